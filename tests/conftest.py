"""Test configuration and fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from roster_provisioner.errors import ErrorKind, HostingError
from roster_provisioner.hosting.client import HostingClient, RepoHandle
from roster_provisioner.roster.naming import PermissionLevel
from roster_provisioner.workflow.orchestrator import ProvisioningOrchestrator
from roster_provisioner.workflow.retry import RetryPolicy


class FakeClock:
    """Monotonic clock that only advances when the code under test sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeHostingClient(HostingClient):
    """In-memory hosting backend that records every call."""

    def __init__(
        self,
        *,
        unknown_users: set[str] | None = None,
        existing_repos: set[str] | None = None,
        not_ready_polls: int = 0,
        reported_branch: str | None = "main",
        protectable_branches: set[str] | None = None,
        flaky_member_adds: int = 0,
    ) -> None:
        self.unknown_users = unknown_users or set()
        self.existing_repos = existing_repos or set()
        self.not_ready_polls = not_ready_polls
        self.reported_branch = reported_branch
        self.protectable_branches = protectable_branches or {"main"}
        self.flaky_member_adds = flaky_member_adds

        self.calls: list[tuple[str, ...]] = []
        self.on_create: Callable[[str], None] | None = None
        self.closed = False
        self._lock = threading.Lock()
        self._polls: dict[str, int] = {}

    def _record(self, *call: str) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_for(self, repo_name: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if len(c) > 1 and c[1] == repo_name]

    def verify_access(self, group: str, template_ref: str) -> None:
        self._record("verify_access", group, template_ref)

    def create_repo_from_template(self, group: str, template_ref: str, new_name: str) -> RepoHandle:
        self._record("create", new_name)
        if self.on_create is not None:
            self.on_create(new_name)
        if new_name in self.existing_repos:
            raise HostingError(ErrorKind.CONFLICT, f"Repository {new_name} already exists")
        self.existing_repos.add(new_name)
        return RepoHandle(
            name=new_name,
            full_path=f"{group}/{new_name}",
            id=len(self.existing_repos),
            web_url=f"https://git.example.edu/{group}/{new_name}",
        )

    def repo_is_ready(self, handle: RepoHandle) -> bool:
        self._record("ready", handle.name)
        with self._lock:
            polls = self._polls.get(handle.name, 0) + 1
            self._polls[handle.name] = polls
        return polls > self.not_ready_polls

    def default_branch(self, handle: RepoHandle) -> str | None:
        self._record("default_branch", handle.name)
        return self.reported_branch

    def add_member(
        self,
        handle: RepoHandle,
        username: str,
        permission_level: PermissionLevel,
    ) -> None:
        self._record("add_member", handle.name, username, permission_level.value)
        with self._lock:
            if self.flaky_member_adds > 0:
                self.flaky_member_adds -= 1
                raise HostingError(ErrorKind.NOT_READY, "project not ready", retryable=True)
        if username in self.unknown_users:
            raise HostingError(ErrorKind.NOT_FOUND, f"User {username} does not exist")

    def set_branch_protection(
        self,
        handle: RepoHandle,
        branch_name: str,
        *,
        forbid_force_push: bool = True,
    ) -> None:
        self._record("protect", handle.name, branch_name, str(forbid_force_push))
        if branch_name not in self.protectable_branches:
            raise HostingError(
                ErrorKind.NOT_FOUND,
                f"Branch {branch_name} not found",
                status=404,
                retryable=True,
            )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeHostingClient:
    return FakeHostingClient()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_orchestrator(
    fake_clock: FakeClock,
) -> Callable[..., ProvisioningOrchestrator]:
    """Build an orchestrator whose waits advance a fake clock instead of sleeping."""

    def _make(client: HostingClient, **overrides: object) -> ProvisioningOrchestrator:
        options: dict[str, object] = {
            "group": "ece459-1231",
            "template_ref": "ece459/ece459-a1",
            "readiness_timeout": 30.0,
            "readiness_policy": RetryPolicy(initial_delay=1.0, backoff_factor=2.0, max_delay=8.0),
            "config_policy": RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=4.0),
            "sleep": fake_clock.sleep,
            "clock": fake_clock,
        }
        options.update(overrides)
        return ProvisioningOrchestrator(client, **options)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_client() -> Callable[..., FakeHostingClient]:
    return FakeHostingClient
