"""Unit tests for repository naming."""

from __future__ import annotations

import pytest

from roster_provisioner.errors import MalformedRosterError, NameCollisionError
from roster_provisioner.roster.naming import (
    PermissionLevel,
    build_targets,
    name_entry,
)
from roster_provisioner.roster.parser import EntryKind, RosterEntry, parse_roster


def _names(content: str, designation: str = "a1", group_name: str = "ece459-1231") -> list[str]:
    targets = build_targets(parse_roster(content), designation=designation, group_name=group_name)
    return [t.repo_name for t in targets]


def test_example_roster_yields_expected_targets() -> None:
    targets = build_targets(
        parse_roster("jzarnett\nabc,def\nghi\n"),
        designation="a1",
        group_name="ece459-1231",
    )

    assert [(t.repo_name, t.members, t.kind) for t in targets] == [
        ("ece459-1231-a1-jzarnett", ("jzarnett",), EntryKind.SOLO),
        ("ece459-1231-a1-g2", ("abc", "def"), EntryKind.GROUP),
        ("ece459-1231-a1-ghi", ("ghi",), EntryKind.SOLO),
    ]
    assert all(t.permission_level is PermissionLevel.DEVELOPER for t in targets)


def test_group_numbering_starts_at_g2_and_ignores_solo_lines() -> None:
    roster = "s1\ns2\nabc,def\ns3\ns4\ns5\ns6\nghi,jkl\n"

    names = _names(roster)

    assert names[2] == "ece459-1231-a1-g2"
    assert names[7] == "ece459-1231-a1-g3"


def test_blank_lines_do_not_shift_group_numbers() -> None:
    assert _names("abc,def\n\n\nghi,jkl\n") == _names("abc,def\nghi,jkl\n")
    assert _names("abc,def\n\n\nghi,jkl\n") == ["ece459-1231-a1-g2", "ece459-1231-a1-g3"]


def test_naming_is_deterministic() -> None:
    roster = "jzarnett\nabc,def\nghi\nxyz,uvw,rst\n"

    assert _names(roster) == _names(roster)


def test_duplicate_solo_entries_collide() -> None:
    with pytest.raises(NameCollisionError) as excinfo:
        _names("abc\ndef\nabc\n")

    assert excinfo.value.collisions == {"ece459-1231-a1-abc": [1, 3]}


def test_solo_username_can_collide_with_group_name() -> None:
    with pytest.raises(NameCollisionError) as excinfo:
        _names("abc,def\ng2\n")

    assert "ece459-1231-a1-g2" in excinfo.value.collisions


def test_malformed_roster_propagates_from_lazy_parse() -> None:
    with pytest.raises(MalformedRosterError):
        _names("abc\n,\n")


def test_group_entry_requires_group_number() -> None:
    entry = RosterEntry(line_number=4, usernames=("abc", "def"))

    with pytest.raises(ValueError):
        name_entry("a1", "ece459-1231", entry)


def test_name_entry_keeps_line_number() -> None:
    entry = RosterEntry(line_number=7, usernames=("abc",))

    target = name_entry("exam", "cs101", entry)

    assert target.repo_name == "cs101-exam-abc"
    assert target.line_number == 7
