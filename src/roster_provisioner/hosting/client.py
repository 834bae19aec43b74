"""Abstract base class for hosting backends.

This interface keeps every network call behind one seam so the orchestrator
can drive GitLab or GitHub (or an in-memory fake in tests) the same way.
Backends raise :class:`~roster_provisioner.errors.HostingError` for
operational failures and :class:`~roster_provisioner.errors.PreflightError`
from :meth:`HostingClient.verify_access`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from roster_provisioner.roster.naming import PermissionLevel


@dataclass(frozen=True, slots=True)
class RepoHandle:
    """Minimal metadata for a repository created by a backend."""

    name: str
    full_path: str
    id: int | str
    web_url: str | None = None


class HostingClient(ABC):
    """Operations the orchestrator needs from a hosting provider.

    Implementations must be safe to share between worker threads once
    :meth:`verify_access` has returned.
    """

    @abstractmethod
    def verify_access(self, group: str, template_ref: str) -> None:
        """Resolve the target group and the template without mutating anything."""

    @abstractmethod
    def create_repo_from_template(
        self,
        group: str,
        template_ref: str,
        new_name: str,
    ) -> RepoHandle:
        """Create ``group/new_name`` as a copy of the template, history included.

        An existing repository with that name is a ``CONFLICT`` error; it is
        never overwritten.
        """

    @abstractmethod
    def repo_is_ready(self, handle: RepoHandle) -> bool:
        """Return True once the repository accepts configuration calls.

        Raises:
            HostingError: If the provider reports that the copy failed.
        """

    @abstractmethod
    def default_branch(self, handle: RepoHandle) -> str | None:
        """Return the repository's default branch, if the provider reports one."""

    @abstractmethod
    def add_member(
        self,
        handle: RepoHandle,
        username: str,
        permission_level: PermissionLevel,
    ) -> None:
        """Grant ``username`` access; an unknown account is a ``NOT_FOUND`` error."""

    @abstractmethod
    def set_branch_protection(
        self,
        handle: RepoHandle,
        branch_name: str,
        *,
        forbid_force_push: bool = True,
    ) -> None:
        """Protect ``branch_name`` so non-owners can push but not rewrite history."""

    def close(self) -> None:
        """Release network resources."""
