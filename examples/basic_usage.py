#!/usr/bin/env python3
"""Programmatic provisioning example.

This demonstrates using the provisioner components directly:

* load settings from `.env` / ``PROVISIONER_*`` environment variables
* read the access token and the roster
* provision every roster entry and print the run report

Pass ``--dry-run`` to stop after naming the repositories.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from roster_provisioner.config import ProvisionerSettings
from roster_provisioner.credentials import read_token_file
from roster_provisioner.hosting import create_hosting_client
from roster_provisioner.logging import configure_logging
from roster_provisioner.roster import build_targets, read_roster
from roster_provisioner.workflow import ProvisioningOrchestrator


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision repositories (programmatic example).")
    parser.add_argument("--designation", required=True, help='Assignment label, e.g. "a1"')
    parser.add_argument("--group", required=True, help="Group that owns the new repositories")
    parser.add_argument("--template", required=True, help='Template in the form "group/repo"')
    parser.add_argument("--roster", required=True, type=Path, help="Roster CSV file")
    parser.add_argument("--token-file", required=True, type=Path, help="Access token file")
    parser.add_argument("--dry-run", action="store_true", help="Only print the planned names")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = ProvisionerSettings()
    token = read_token_file(args.token_file)
    configure_logging(settings.log_level, secrets=[token])

    targets = build_targets(
        read_roster(args.roster, blank_lines=settings.blank_lines),
        designation=args.designation,
        group_name=args.group,
    )
    if args.dry_run:
        for target in targets:
            print(f"{target.repo_name}: {', '.join(target.members)}")
        return 0

    client = create_hosting_client(settings, token)
    try:
        client.verify_access(args.group, args.template)
        orchestrator = ProvisioningOrchestrator.from_settings(
            client,
            settings,
            group=args.group,
            template_ref=args.template,
        )
        report = orchestrator.run(targets)
    finally:
        client.close()

    print(report.render())
    return 0 if not report.failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
