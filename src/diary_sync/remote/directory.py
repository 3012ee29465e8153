"""Remote source backed by a directory of exported text files.

The export layout is one file per date, ``<root>/YYYY-MM-DD.txt``, as
written by the document export job.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from diary_sync.errors import UpstreamUnavailableError
from diary_sync.file_handler import read_file_with_encoding, validate_directory
from diary_sync.remote.base import parse_date_stem

logger = logging.getLogger(__name__)


class DirectoryRemoteSource:
    """Read diary text from ``<root>/YYYY-MM-DD.txt`` files.

    Args:
        root: Export directory.  It is checked on every call, since the
            export is often a mounted or synced folder.
        suffix: File extension of export files.
    """

    def __init__(self, root: Path, suffix: str = ".txt") -> None:
        self.root = Path(root).expanduser()
        self.suffix = suffix

    def _check_root(self) -> None:
        try:
            validate_directory(self.root)
        except ValueError as exc:
            raise UpstreamUnavailableError(
                f"Export directory not available: {exc}"
            ) from exc

    def fetch(self, diary_date: date) -> str | None:
        self._check_root()
        path = self.root / f"{diary_date.isoformat()}{self.suffix}"
        if not path.exists():
            return None
        try:
            content, encoding = read_file_with_encoding(path)
        except OSError as exc:
            raise UpstreamUnavailableError(
                f"Cannot read {path}: {exc}"
            ) from exc
        logger.debug("Read %s (%s)", path, encoding)
        return content

    def list_dates(self) -> list[date]:
        self._check_root()
        dates = []
        for path in self.root.glob(f"*{self.suffix}"):
            parsed = parse_date_stem(path.stem)
            if parsed is None:
                logger.debug("Ignoring non-diary file %s", path.name)
                continue
            dates.append(parsed)
        return sorted(dates)
