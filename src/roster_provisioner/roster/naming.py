"""Repository naming for roster entries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from roster_provisioner.errors import NameCollisionError
from roster_provisioner.roster.parser import EntryKind, RosterEntry

logger = logging.getLogger(__name__)


class PermissionLevel(str, Enum):
    """Access tier granted to roster members.

    Developer-equivalent: members can push to unprotected state but cannot
    change repository settings or branch protection.
    """

    DEVELOPER = "developer"


MEMBER_PERMISSION = PermissionLevel.DEVELOPER


@dataclass(frozen=True, slots=True)
class ProvisioningTarget:
    """A repository to create and the people to add to it."""

    repo_name: str
    members: tuple[str, ...]
    line_number: int
    kind: EntryKind
    permission_level: PermissionLevel = MEMBER_PERMISSION


def repo_name_for(designation: str, group_name: str, entry: RosterEntry) -> str:
    if entry.kind is EntryKind.SOLO:
        return f"{group_name}-{designation}-{entry.usernames[0]}"

    if entry.group_number is None:
        raise ValueError(f"Group entry on line {entry.line_number} has no group number")
    # Group repositories are numbered from g2: the first group is g2, the
    # second g3, and so on. Existing course repositories follow this scheme,
    # so it must not be renumbered.
    return f"{group_name}-{designation}-g{entry.group_number + 1}"


def name_entry(designation: str, group_name: str, entry: RosterEntry) -> ProvisioningTarget:
    return ProvisioningTarget(
        repo_name=repo_name_for(designation, group_name, entry),
        members=entry.usernames,
        line_number=entry.line_number,
        kind=entry.kind,
    )


def build_targets(
    entries: Iterable[RosterEntry],
    *,
    designation: str,
    group_name: str,
) -> list[ProvisioningTarget]:
    """Name every entry and reject the roster if two names collide.

    Raises:
        NameCollisionError: If any repository name is produced more than once.
        MalformedRosterError: Propagated from lazy roster parsing.
    """

    targets = [name_entry(designation, group_name, entry) for entry in entries]

    lines_by_name: dict[str, list[int]] = {}
    for target in targets:
        lines_by_name.setdefault(target.repo_name, []).append(target.line_number)

    collisions = {name: lines for name, lines in lines_by_name.items() if len(lines) > 1}
    if collisions:
        raise NameCollisionError(collisions)

    logger.info(
        "Provisioning targets named",
        extra={
            "targets": len(targets),
            "groups": sum(1 for t in targets if t.kind is EntryKind.GROUP),
        },
    )
    return targets
