"""Plain-text yearly archive of the diary.

``export_years`` writes one ``diary_<year>.txt`` per year holding every
entry of that year in date order.  A year whose archive file is at least
as new as its most recently modified entry is left alone, so repeated
exports only rewrite the years that changed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from itertools import groupby
from pathlib import Path
from typing import NamedTuple

from diary_sync.errors import InvalidRequestError, StorageFailureError
from diary_sync.file_handler import validate_directory, write_text_atomic
from diary_sync.storage.base import EntryStore

logger = logging.getLogger(__name__)


class YearExport(NamedTuple):
    """What ``export_years`` did for one year."""

    year: int
    path: Path
    entry_count: int
    written: bool


def archive_path(directory: Path, year: int) -> Path:
    return directory / f"diary_{year}.txt"


def _is_current(path: Path, newest: datetime) -> bool:
    if not path.exists():
        return False
    modified = datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
    return modified >= newest


def export_years(entries: EntryStore, directory: str | Path) -> list[YearExport]:
    """Write the yearly archive files under *directory*.

    Each entry's text is followed by a newline.

    Returns:
        One ``YearExport`` per year that has entries, oldest year first.

    Raises:
        InvalidRequestError: If *directory* is not an existing directory.
        StorageFailureError: If an archive file cannot be written.
    """
    try:
        root = validate_directory(directory)
    except ValueError as exc:
        raise InvalidRequestError(f"Archive directory unusable: {exc}") from exc

    results = []
    dates = sorted(entries.list_dates())
    for year, year_dates in groupby(dates, key=lambda d: d.year):
        year_entries = entries.get_many(year_dates)
        path = archive_path(root, year)
        newest = max(e.last_modified for e in year_entries)
        if _is_current(path, newest):
            results.append(YearExport(year, path, len(year_entries), False))
            continue

        text = "".join(f"{e.diary_text}\n" for e in year_entries)
        try:
            write_text_atomic(path, text)
        except OSError as exc:
            raise StorageFailureError(f"Cannot write {path}: {exc}") from exc
        logger.info("Archived %d entries of %d to %s", len(year_entries), year, path)
        results.append(YearExport(year, path, len(year_entries), True))
    return results
