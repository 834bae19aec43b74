"""Roster parsing and repository naming."""

from roster_provisioner.roster.naming import (
    MEMBER_PERMISSION,
    PermissionLevel,
    ProvisioningTarget,
    build_targets,
    name_entry,
)
from roster_provisioner.roster.parser import (
    EntryKind,
    Roster,
    RosterEntry,
    parse_roster,
    read_roster,
)

__all__ = [
    "MEMBER_PERMISSION",
    "EntryKind",
    "PermissionLevel",
    "ProvisioningTarget",
    "Roster",
    "RosterEntry",
    "build_targets",
    "name_entry",
    "parse_roster",
    "read_roster",
]
