"""CLI entrypoint for the roster provisioner.

Usage:
    roster-provision <designation> <group_name> <template_repo> <roster.csv> <token_file>

Example:
    roster-provision a1 ece459-1231 ece459/ece459-a1 students.csv token.git
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from roster_provisioner import __version__
from roster_provisioner.config import ProvisionerSettings
from roster_provisioner.credentials import read_token_file
from roster_provisioner.errors import (
    CredentialError,
    MalformedRosterError,
    NameCollisionError,
    PreflightError,
)
from roster_provisioner.hosting.factory import create_hosting_client
from roster_provisioner.logging import configure_logging
from roster_provisioner.roster.naming import ProvisioningTarget, build_targets
from roster_provisioner.roster.parser import read_roster
from roster_provisioner.workflow.orchestrator import ProvisioningOrchestrator

logger = logging.getLogger(__name__)

# namespace/repo, where GitLab namespaces may be nested (a/b/repo).
TEMPLATE_REF_PATTERN = re.compile(r"^[\w.-]+(?:/[\w.-]+)+$")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PREFLIGHT = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roster-provision",
        description=(
            "Create one repository per roster entry from a template, add the entry's "
            "members and protect the default branch against force pushes."
        ),
        epilog="Example: roster-provision a1 ece459-1231 ece459/ece459-a1 students.csv token.git",
    )
    parser.add_argument("--version", action="version", version=f"roster-provisioner {__version__}")

    parser.add_argument("designation", help="Assignment or offering label, e.g. 'a1'")
    parser.add_argument("group_name", help="Group (namespace) that will own the new repositories")
    parser.add_argument(
        "template_repo",
        help="Template repository in the form 'group/repo'",
    )
    parser.add_argument("roster_csv", type=Path, help="Roster file: one student or group per line")
    parser.add_argument("token_file", type=Path, help="File containing the access token")

    parser.add_argument(
        "--provider",
        choices=["gitlab", "github"],
        default=None,
        help="Hosting backend (default: gitlab, or PROVISIONER_PROVIDER)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="GitLab server root or GitHub API URL (defaults to the provider's usual host)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Roster entries to provision concurrently (default: 1)",
    )
    parser.add_argument(
        "--default-branch",
        default=None,
        help="Branch to protect when the provider does not report one (default: main)",
    )
    parser.add_argument(
        "--blank-lines",
        choices=["skip", "fail"],
        default=None,
        help="Skip blank roster lines (default) or reject the roster",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the roster and print the planned repositories without remote calls",
    )
    parser.add_argument(
        "--report-file",
        type=Path,
        default=None,
        help="Also write the run report as JSON to this path",
    )
    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    candidates = {
        "provider": args.provider,
        "base_url": args.base_url,
        "workers": args.workers,
        "default_branch": args.default_branch,
        "blank_lines": args.blank_lines,
        "log_level": args.log_level,
    }
    return {key: value for key, value in candidates.items() if value is not None}


def _print_plan(targets: list[ProvisioningTarget]) -> None:
    for target in targets:
        print(f"{target.repo_name}: {', '.join(target.members)}")
    print(f"{len(targets)} repositories planned")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.designation.strip() or not args.group_name.strip():
        print("designation and group_name must not be empty", file=sys.stderr)
        return EXIT_USAGE
    if not TEMPLATE_REF_PATTERN.match(args.template_repo):
        print(
            f"Invalid template repository {args.template_repo!r}; expected 'group/repo'",
            file=sys.stderr,
        )
        return EXIT_USAGE

    try:
        settings = ProvisionerSettings(**_settings_overrides(args))
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env and options):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_USAGE

    try:
        token = read_token_file(args.token_file)
    except CredentialError as e:
        print(f"Credential error: {e}", file=sys.stderr)
        return EXIT_PREFLIGHT

    configure_logging(settings.log_level, secrets=[token])

    try:
        roster = read_roster(args.roster_csv, blank_lines=settings.blank_lines)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Unable to read roster {args.roster_csv}: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        targets = build_targets(roster, designation=args.designation, group_name=args.group_name)
    except (MalformedRosterError, NameCollisionError) as e:
        logger.error("Roster rejected", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return EXIT_PREFLIGHT

    if args.dry_run:
        _print_plan(targets)
        return EXIT_OK

    try:
        client = create_hosting_client(settings, token)
        try:
            client.verify_access(args.group_name, args.template_repo)
            orchestrator = ProvisioningOrchestrator.from_settings(
                client,
                settings,
                group=args.group_name,
                template_ref=args.template_repo,
            )
            report = orchestrator.run(targets)
        finally:
            client.close()

    except PreflightError as e:
        logger.error("Pre-flight check failed", extra={"error": str(e)})
        print(f"Pre-flight check failed: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except KeyboardInterrupt:
        print("Interrupted before provisioning started", file=sys.stderr)
        return EXIT_INTERRUPTED

    except Exception:
        logger.exception("Provisioning failed")
        return EXIT_FAILURE

    print(report.render())
    if args.report_file is not None:
        report.write_json(args.report_file)

    # Per-target failures are in the report; they do not change the exit status.
    return EXIT_INTERRUPTED if report.interrupted else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
