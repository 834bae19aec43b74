"""Run report: one outcome per roster entry, in roster order."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field

from roster_provisioner.hosting.client import RepoHandle
from roster_provisioner.roster.naming import ProvisioningTarget
from roster_provisioner.workflow.state_machine import Stage, TargetState

logger = logging.getLogger(__name__)

CREATED = "Created"
FAILED = "Failed"


@dataclass(frozen=True, slots=True)
class ProvisioningResult:
    """Outcome of provisioning one target."""

    target: ProvisioningTarget
    state: TargetState
    stage: Stage | None = None
    reason: str | None = None
    repo: RepoHandle | None = None

    @property
    def ok(self) -> bool:
        return self.state is TargetState.DONE

    @property
    def status(self) -> str:
        return CREATED if self.ok else FAILED

    def describe(self) -> str:
        if self.ok:
            return f"{self.target.repo_name}: {CREATED}"
        stage = self.stage.value if self.stage is not None else "unknown stage"
        return f"{self.target.repo_name}: {FAILED} at {stage}: {self.reason or 'unknown error'}"


class ResultRecord(BaseModel):
    """Serializable representation of a :class:`ProvisioningResult`."""

    line_number: int
    repo_name: str
    members: list[str] = Field(default_factory=list)
    status: str
    stage: str | None = Field(default=None)
    reason: str | None = Field(default=None)
    web_url: str | None = Field(default=None)

    @classmethod
    def from_result(cls, result: ProvisioningResult) -> ResultRecord:
        return cls(
            line_number=result.target.line_number,
            repo_name=result.target.repo_name,
            members=list(result.target.members),
            status=result.status,
            stage=result.stage.value if result.stage is not None else None,
            reason=result.reason,
            web_url=result.repo.web_url if result.repo is not None else None,
        )


@dataclass(slots=True)
class RunReport:
    results: list[ProvisioningResult] = field(default_factory=list)
    interrupted: bool = False

    @property
    def created(self) -> list[ProvisioningResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ProvisioningResult]:
        return [r for r in self.results if not r.ok]

    def lines(self) -> list[str]:
        return [r.describe() for r in self.results]

    def summary(self) -> str:
        text = f"{len(self.created)} created, {len(self.failed)} failed"
        if self.interrupted:
            text += " (interrupted)"
        return text

    def render(self) -> str:
        return "\n".join([*self.lines(), self.summary()])

    def records(self) -> list[ResultRecord]:
        return [ResultRecord.from_result(r) for r in self.results]

    def write_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(
                [r.model_dump(mode="json") for r in self.records()],
                indent=2,
                ensure_ascii=False,
            )
            + "\n",
            encoding="utf-8",
        )
        logger.info("Run report written", extra={"path": str(path)})
