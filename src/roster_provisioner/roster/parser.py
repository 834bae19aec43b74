"""Roster parsing.

A roster is comma-separated text with one provisioning entry per line:

    jzarnett
    abc,def
    ghi

A line with a single username is a solo entry; a line with more is a group.
Line numbers are 1-based positions among *all* lines, so skipped blank lines
still consume a number and later numbering stays stable when the file is
edited.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

from roster_provisioner.errors import MalformedRosterError

logger = logging.getLogger(__name__)

DELIMITER = ","

BlankLinePolicy = Literal["skip", "fail"]


class EntryKind(str, Enum):
    SOLO = "solo"
    GROUP = "group"


@dataclass(frozen=True, slots=True)
class RosterEntry:
    """One non-blank roster line."""

    line_number: int
    usernames: tuple[str, ...]
    # 1-based ordinal among group entries in file order; None for solo entries.
    group_number: int | None = None

    def __post_init__(self) -> None:
        if not self.usernames:
            raise ValueError("usernames must not be empty")
        if len(set(self.usernames)) != len(self.usernames):
            raise ValueError("usernames must be unique within an entry")

    @property
    def kind(self) -> EntryKind:
        return EntryKind.SOLO if len(self.usernames) == 1 else EntryKind.GROUP


def split_usernames(line: str) -> tuple[str, ...]:
    """Split a roster line into distinct usernames, preserving first-seen order."""

    parts = (part.strip() for part in line.split(DELIMITER))
    return tuple(dict.fromkeys(part for part in parts if part))


class Roster:
    """A lazy, restartable view over roster text.

    Each iteration re-parses the content from the first line, so the same
    ``Roster`` can be walked for validation and again for provisioning.
    """

    def __init__(self, content: str, *, blank_lines: BlankLinePolicy = "skip") -> None:
        if blank_lines not in ("skip", "fail"):
            raise ValueError(f"Unsupported blank line policy: {blank_lines!r}")
        self._content = content
        self._blank_lines = blank_lines

    def __iter__(self) -> Iterator[RosterEntry]:
        groups_seen = 0
        for line_number, line in enumerate(self._content.splitlines(), start=1):
            if not line.strip():
                if self._blank_lines == "fail":
                    raise MalformedRosterError(line_number, "blank line")
                logger.debug("Skipping blank roster line", extra={"line_number": line_number})
                continue

            usernames = split_usernames(line)
            if not usernames:
                raise MalformedRosterError(line_number, "no usernames found")

            group_number: int | None = None
            if len(usernames) > 1:
                groups_seen += 1
                group_number = groups_seen

            yield RosterEntry(
                line_number=line_number,
                usernames=usernames,
                group_number=group_number,
            )

    def entries(self) -> list[RosterEntry]:
        """Parse the whole roster eagerly."""

        return list(self)


def parse_roster(content: str, *, blank_lines: BlankLinePolicy = "skip") -> Roster:
    return Roster(content, blank_lines=blank_lines)


def read_roster(path: Path, *, blank_lines: BlankLinePolicy = "skip") -> Roster:
    """Read a roster file; a leading UTF-8 byte-order mark is ignored."""

    content = path.read_text(encoding="utf-8-sig")
    logger.info("Roster loaded", extra={"path": str(path)})
    return Roster(content, blank_lines=blank_lines)
