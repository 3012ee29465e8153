"""Facade exposing every diary operation to callers.

``DiaryService`` wires the entry, conflict and cache stores, the remote
source, the sync engine and the resolution engine around one shared set
of per-date locks.  The MCP tool handlers call it through ``run_sync``.
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path

from diary_sync.config import Config
from diary_sync.core.async_utils import run_sync
from diary_sync.errors import ConflictError, InvalidRequestError
from diary_sync.remote import DirectoryRemoteSource, HttpRemoteSource
from diary_sync.remote.base import RemoteSource
from diary_sync.storage import (
    SqliteCacheStore,
    SqliteConflictStore,
    SqliteDatabase,
    SqliteEntryStore,
)
from diary_sync.storage.base import CacheStore, ConflictStore, EntryStore
from diary_sync.sync.archive import YearExport, export_years
from diary_sync.sync.engine import SyncEngine
from diary_sync.sync.locks import DateLocks
from diary_sync.sync.models import (
    CacheEntry,
    ConflictHunk,
    DiaryEntry,
    DiffType,
    Episode,
    SyncReport,
)
from diary_sync.sync.resolver import EpisodeListing, ResolutionEngine
from diary_sync.validators import (
    validate_date_range,
    validate_query,
    validate_window,
)

logger = logging.getLogger(__name__)


@dataclass
class CacheMergeResult:
    """Entries that received cached notes, and dates whose notes stayed."""

    merged: list[DiaryEntry] = field(default_factory=list)
    kept: list[date] = field(default_factory=list)


_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_YEAR = re.compile(r"^(\d{4})$")

# Matches nothing: first day after last day
_NO_DATES = (date.max, date.min)


def _query_span(query: str) -> tuple[date, date] | None:
    """Inclusive date range a search query selects, or None for text."""
    if query.lower() == "today":
        today = date.today()
        return today, today

    if match := _DAY.match(query):
        try:
            day = date(*(int(g) for g in match.groups()))
        except ValueError:
            return _NO_DATES
        return day, day

    if match := _MONTH.match(query):
        year, month = (int(g) for g in match.groups())
        if not 1 <= month <= 12 or year < 1:
            return _NO_DATES
        last = calendar.monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last)

    if match := _YEAR.match(query):
        year = int(match.group(1))
        if year < 1:
            return _NO_DATES
        return date(year, 1, 1), date(year, 12, 31)

    return None


class DiaryService:
    """Diary operations over one set of stores and a remote.

    Args:
        entries: Entry store.
        conflicts: Conflict store.
        remote: Remote source.
        cache: Store of notes waiting to be merged into entries.
        pending_policy: ``"reject"`` or ``"supersede"``.
        conflict_strategy: ``"manual"``, ``"local-wins"`` or
            ``"remote-wins"``.
        fetch_timeout: Per-date timeout for async bulk syncs.
        archive_dir: Where ``export_archive`` writes; ``None`` disables it.
    """

    def __init__(
        self,
        entries: EntryStore,
        conflicts: ConflictStore,
        remote: RemoteSource,
        cache: CacheStore,
        pending_policy: str = "reject",
        conflict_strategy: str = "manual",
        fetch_timeout: float = 30.0,
        archive_dir: str | None = None,
    ) -> None:
        self.entries = entries
        self.conflicts = conflicts
        self.remote = remote
        self.cache = cache
        self.archive_dir = archive_dir
        self.locks = DateLocks()
        self.engine = SyncEngine(
            entries,
            conflicts,
            remote,
            locks=self.locks,
            pending_policy=pending_policy,
            conflict_strategy=conflict_strategy,
            fetch_timeout=fetch_timeout,
        )
        self.resolver = ResolutionEngine(entries, conflicts, self.locks)

    @classmethod
    def from_config(cls, config: Config) -> DiaryService:
        """Build a service backed by SQLite and the configured remote."""
        db = SqliteDatabase(Path(config.database_path).expanduser())
        remote: RemoteSource
        if config.remote_url:
            auth = None
            if config.remote_username and config.remote_password:
                auth = (config.remote_username, config.remote_password)
            remote = HttpRemoteSource(
                config.remote_url,
                timeout=config.remote_timeout,
                auth=auth,
                verify=not config.insecure,
            )
        else:
            remote = DirectoryRemoteSource(Path(config.remote_dir or "."))
        logger.info(
            "Diary service: db=%s remote=%s policy=%s strategy=%s",
            db.db_path,
            config.remote_url or config.remote_dir,
            config.pending_policy,
            config.conflict_strategy,
        )
        return cls(
            SqliteEntryStore(db),
            SqliteConflictStore(db),
            remote,
            SqliteCacheStore(db),
            pending_policy=config.pending_policy,
            conflict_strategy=config.conflict_strategy,
            fetch_timeout=config.remote_timeout,
            archive_dir=config.archive_dir,
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get_entry(self, diary_date: date) -> DiaryEntry | None:
        return self.entries.get(diary_date)

    def put_entry(self, diary_date: date, diary_text: str) -> DiaryEntry:
        """Overwrite the entry for *diary_date* directly, without diffing."""
        with self.locks.hold(diary_date):
            return self.entries.put(diary_date, diary_text)

    def search(self, query: str) -> list[DiaryEntry]:
        """Find entries by date pattern or text.

        ``YYYY-MM-DD``, ``YYYY-MM`` and ``YYYY`` select the entries in that
        day, month or year; ``today`` selects today's entry.  Anything else
        is a case-sensitive substring match on the text.
        """
        query = validate_query(query)
        span = _query_span(query)
        if span is None:
            return self.entries.search_text(query)
        return self.entries.get_many(self.entries.list_dates(*span))

    def search_cache(self, query: str) -> list[CacheEntry]:
        """Find cached notes the way ``search`` finds entries.

        A date query matches the local calendar date a note was cached on.
        """
        query = validate_query(query)
        span = _query_span(query)
        if span is None:
            return self.cache.search_text(query)
        first, last = span
        return [c for c in self.cache.list_all() if first <= c.local_date <= last]

    def list_entries(
        self,
        min_date: date | None = None,
        max_date: date | None = None,
        start: int = 0,
        limit: int | None = None,
    ) -> list[date]:
        """Return one page of entry dates, newest first."""
        validate_window(start, limit)
        validate_date_range(min_date, max_date)
        return self.entries.list_dates(min_date, max_date, start, limit)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def cache_text(self, diary_text: str) -> CacheEntry:
        """Keep *diary_text* as a timestamped note until ``merge_cache``."""
        if not diary_text.strip():
            raise InvalidRequestError("Cached text must not be empty")
        return self.cache.add(diary_text)

    def merge_cache(self) -> CacheMergeResult:
        """Append cached notes to the entries of the days they were taken.

        Each note becomes a ``<timestamp>\\n<text>`` block; a day's blocks
        are joined by blank lines and appended to that day's entry, which
        is created if needed.  Days with a pending conflict episode keep
        their notes cached, since committing the episode would rebuild the
        entry from its older snapshot.
        """
        by_date: dict[date, list[CacheEntry]] = {}
        for note in self.cache.list_all():
            by_date.setdefault(note.local_date, []).append(note)

        result = CacheMergeResult()
        for diary_date, notes in sorted(by_date.items()):
            block = "\n\n".join(
                f"{n.diary_datetime.astimezone().isoformat(timespec='seconds')}"
                f"\n{n.diary_text}"
                for n in notes
            )
            with self.locks.hold(diary_date):
                try:
                    entry = self.cache.merge_into_entry(
                        diary_date, block, [n.diary_datetime for n in notes]
                    )
                except ConflictError as exc:
                    logger.info("Cache merge skipped: %s", exc)
                    result.kept.append(diary_date)
                    continue
            logger.info("Merged %d cached notes into %s", len(notes), diary_date)
            result.merged.append(entry)
        return result

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, diary_date: date | None = None) -> SyncReport:
        """Sync one date, or every known date when *diary_date* is None.

        A single-date sync raises its error directly; a bulk sync records
        failures per date in the report.
        """
        if diary_date is None:
            return self.engine.sync_all()
        started_at = datetime.now(timezone.utc).isoformat()
        result = self.engine.sync_date(diary_date)
        return SyncReport(
            results=[result],
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    async def sync_async(self, diary_date: date | None = None) -> SyncReport:
        """Async ``sync``: a bulk run fans out over worker threads."""
        if diary_date is None:
            return await self.engine.sync_all_async()
        return await run_sync(self.sync, diary_date)

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def export_archive(self) -> list[YearExport]:
        """Write the yearly ``diary_<year>.txt`` files to ``archive_dir``."""
        if not self.archive_dir:
            raise InvalidRequestError(
                "No archive directory configured. Set DIARY_ARCHIVE_DIR."
            )
        return export_years(self.entries, Path(self.archive_dir).expanduser())

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    def conflict_dates(self) -> list[date]:
        """Return the dates that have a pending episode."""
        return self.conflicts.pending_dates()

    def list_episodes(self, diary_date: date | None = None) -> EpisodeListing:
        return self.resolver.list_episodes(diary_date)

    def show_episode(self, diary_date: date, sync_datetime: datetime) -> Episode:
        return self.resolver.show_episode(diary_date, sync_datetime)

    def toggle_hunk(self, hunk_id: str, direction: DiffType | str) -> ConflictHunk:
        return self.resolver.toggle_hunk(hunk_id, direction)

    def discard_hunk(self, hunk_id: str) -> ConflictHunk:
        return self.resolver.discard_hunk(hunk_id)

    def commit_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> DiaryEntry:
        return self.resolver.commit_episode(diary_date, sync_datetime)

    def discard_episode(self, diary_date: date, sync_datetime: datetime) -> int:
        return self.resolver.discard_episode(diary_date, sync_datetime)

    def resolve_episode(
        self, diary_date: date, sync_datetime: datetime, strategy: str
    ) -> DiaryEntry | None:
        return self.resolver.resolve_episode(
            diary_date, sync_datetime, strategy
        )
