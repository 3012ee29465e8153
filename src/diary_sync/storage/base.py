"""Storage protocols for diary entries, conflict episodes and cached notes.

The sync and resolution engines depend only on these protocols; the SQLite
implementation in ``diary_sync.storage.sqlite`` is the production backend.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from diary_sync.sync.differ import DiffOp
    from diary_sync.sync.models import (
        CacheEntry,
        ConflictHunk,
        DiaryEntry,
        Episode,
        EpisodeSummary,
    )


class EntryStore(Protocol):
    """Persistent mapping from calendar date to diary text."""

    def get(self, diary_date: date) -> DiaryEntry | None:
        """Return the entry for *diary_date*, or ``None`` if absent."""
        ...  # pragma: no cover

    def put(self, diary_date: date, diary_text: str) -> DiaryEntry:
        """Insert or overwrite the entry for *diary_date*."""
        ...  # pragma: no cover

    def list_dates(
        self,
        min_date: date | None = None,
        max_date: date | None = None,
        start: int = 0,
        limit: int | None = None,
    ) -> list[date]:
        """Return entry dates in the window, newest first."""
        ...  # pragma: no cover

    def get_many(self, dates: Iterable[date]) -> list[DiaryEntry]:
        """Return the existing entries among *dates*, oldest first."""
        ...  # pragma: no cover

    def search_text(self, text: str) -> list[DiaryEntry]:
        """Return entries whose text contains *text*, oldest first."""
        ...  # pragma: no cover


class ConflictStore(Protocol):
    """Persistent arena of conflict hunks indexed by episode key."""

    def create_episode(
        self,
        diary_date: date,
        sync_datetime: datetime,
        local_text: str,
        ops: Iterable[DiffOp],
        supersede: bool = False,
    ) -> Episode:
        """Atomically materialise an episode from an edit script.

        Raises:
            ConflictError: If an episode is pending for *diary_date* and
                *supersede* is false.
        """
        ...  # pragma: no cover

    def pending_dates(self) -> list[date]:
        """Return dates with at least one pending episode."""
        ...  # pragma: no cover

    def list_episodes(
        self, diary_date: date | None = None
    ) -> list[EpisodeSummary]:
        """Return episode summaries ordered by date and sync time."""
        ...  # pragma: no cover

    def get_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> Episode | None:
        """Return the full episode, or ``None`` if it does not exist."""
        ...  # pragma: no cover

    def get_hunk(self, hunk_id: str) -> ConflictHunk | None:
        """Return one hunk, or ``None`` if it does not exist."""
        ...  # pragma: no cover

    def set_included(self, hunk_id: str, included: bool) -> ConflictHunk:
        """Persist the inclusion flag of a hunk."""
        ...  # pragma: no cover

    def delete_hunk(self, hunk_id: str) -> bool:
        """Remove one hunk.  Returns ``False`` if it did not exist."""
        ...  # pragma: no cover

    def delete_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> int:
        """Remove an episode.  Returns the number of hunks removed, or
        ``-1`` if the episode did not exist."""
        ...  # pragma: no cover

    def commit_episode(
        self, diary_date: date, sync_datetime: datetime, merged_text: str
    ) -> DiaryEntry:
        """Write *merged_text* as the entry and clear the episode in one
        transaction."""
        ...  # pragma: no cover


class CacheStore(Protocol):
    """Notes cached with a timestamp, waiting to be merged into entries."""

    def add(self, diary_text: str) -> CacheEntry:
        """Cache *diary_text*, stamped with the current UTC time."""
        ...  # pragma: no cover

    def list_all(self) -> list[CacheEntry]:
        """Return every cached note, oldest first."""
        ...  # pragma: no cover

    def search_text(self, text: str) -> list[CacheEntry]:
        """Return cached notes containing *text* (case-sensitive)."""
        ...  # pragma: no cover

    def merge_into_entry(
        self,
        diary_date: date,
        block: str,
        cached_at: Iterable[datetime],
    ) -> DiaryEntry:
        """Append *block* to the entry for *diary_date* (creating it if
        absent) and drop the notes cached at *cached_at*, in one
        transaction.

        Raises:
            ConflictError: If the date has a pending episode; nothing is
                written.
        """
        ...  # pragma: no cover
