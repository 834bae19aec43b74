"""Error types shared across the provisioner.

Two families exist:

- pre-flight errors, raised before any remote mutation; they abort the run
- :class:`HostingError`, raised by hosting backends; the orchestrator captures
  it at the target boundary and records it in the run report
"""

from __future__ import annotations

from enum import Enum


class ProvisionerError(Exception):
    """Base class for all provisioner errors."""


class MalformedRosterError(ProvisionerError):
    """A roster line could not be turned into an entry."""

    def __init__(self, line_number: int, message: str) -> None:
        self.line_number = line_number
        self.message = message
        super().__init__(f"Roster line {line_number}: {message}")


class NameCollisionError(ProvisionerError):
    """Two or more roster entries resolve to the same repository name."""

    def __init__(self, collisions: dict[str, list[int]]) -> None:
        self.collisions = collisions
        details = "; ".join(
            f"{name} (lines {', '.join(str(n) for n in lines)})"
            for name, lines in sorted(collisions.items())
        )
        super().__init__(f"Repository name collision: {details}")


class CredentialError(ProvisionerError):
    """The token file is unreadable, empty or not a single token."""


class PreflightError(ProvisionerError):
    """A read-only hosting lookup failed before provisioning started."""


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    NOT_READY = "not_ready"
    OTHER = "other"


class HostingError(ProvisionerError):
    """A hosting provider rejected or failed an operation.

    ``retryable`` marks errors that may clear up on their own, such as calls
    issued while the provider is still copying a repository.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status = status
        self.retryable = retryable
        super().__init__(message)

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message
