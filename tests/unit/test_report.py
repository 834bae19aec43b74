"""Unit tests for the run report."""

from __future__ import annotations

import json
from pathlib import Path

from roster_provisioner.hosting.client import RepoHandle
from roster_provisioner.roster.naming import ProvisioningTarget
from roster_provisioner.roster.parser import EntryKind
from roster_provisioner.workflow.report import ProvisioningResult, RunReport
from roster_provisioner.workflow.state_machine import Stage, TargetState


def _target(name: str, members: tuple[str, ...], line: int) -> ProvisioningTarget:
    kind = EntryKind.SOLO if len(members) == 1 else EntryKind.GROUP
    return ProvisioningTarget(repo_name=name, members=members, line_number=line, kind=kind)


def _report() -> RunReport:
    return RunReport(
        results=[
            ProvisioningResult(
                target=_target("cs101-a1-abc", ("abc",), 1),
                state=TargetState.DONE,
                repo=RepoHandle(
                    name="cs101-a1-abc",
                    full_path="cs101/cs101-a1-abc",
                    id=7,
                    web_url="https://git.example.edu/cs101/cs101-a1-abc",
                ),
            ),
            ProvisioningResult(
                target=_target("cs101-a1-g2", ("def", "ghi"), 3),
                state=TargetState.FAILED,
                stage=Stage.MEMBER_ADD,
                reason="ghi: User ghi does not exist",
            ),
        ]
    )


def test_lines_follow_result_order_and_format() -> None:
    report = _report()

    assert report.lines() == [
        "cs101-a1-abc: Created",
        "cs101-a1-g2: Failed at MemberAdd: ghi: User ghi does not exist",
    ]
    assert report.summary() == "1 created, 1 failed"
    assert report.render().splitlines()[-1] == "1 created, 1 failed"


def test_records_serialize_to_json(tmp_path: Path) -> None:
    path = tmp_path / "out" / "report.json"

    _report().write_json(path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw == [
        {
            "line_number": 1,
            "repo_name": "cs101-a1-abc",
            "members": ["abc"],
            "status": "Created",
            "stage": None,
            "reason": None,
            "web_url": "https://git.example.edu/cs101/cs101-a1-abc",
        },
        {
            "line_number": 3,
            "repo_name": "cs101-a1-g2",
            "members": ["def", "ghi"],
            "status": "Failed",
            "stage": "MemberAdd",
            "reason": "ghi: User ghi does not exist",
            "web_url": None,
        },
    ]


def test_empty_report() -> None:
    report = RunReport()

    assert report.lines() == []
    assert report.render() == "0 created, 0 failed"
