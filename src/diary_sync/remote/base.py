"""Remote source protocol.

A remote source is an independently maintained copy of the diary (a
document export, an object store, a web export).  The sync engine only
needs to read it one date at a time.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Protocol

# Export file stem: YYYY-MM-DD
DATE_STEM = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


class RemoteSource(Protocol):
    """Read contract for the remote copy of diary entries."""

    def fetch(self, diary_date: date) -> str | None:
        """Return the remote text for *diary_date*, or ``None`` if absent.

        Raises:
            UpstreamUnavailableError: If the remote cannot be read.
        """
        ...  # pragma: no cover

    def list_dates(self) -> list[date]:
        """Return every date the remote holds, oldest first.

        Raises:
            UpstreamUnavailableError: If the remote cannot be listed.
        """
        ...  # pragma: no cover


def parse_date_stem(stem: str) -> date | None:
    """Parse an export file stem into a date, or ``None`` if it is not one."""
    match = DATE_STEM.match(stem.strip())
    if match is None:
        return None
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None
