"""Diary sync and conflict resolution.

Public API for comparing locally stored diary entries with a remote copy
and resolving the differences line by line.

Architecture
------------
A sync never overwrites diverging local text.  Instead the line diff
between the local and remote copy is stored as a **conflict episode**: a
flat, ordered list of ``add``/``rem`` hunks keyed by ``(diary_date,
sync_datetime)``.  A caller toggles or discards individual hunks and then
commits, which rebuilds the entry from the episode's local snapshot plus
the hunks still included.

Modules:

- ``engine``    -- ``SyncEngine``: per-date and bulk sync.
- ``resolver``  -- ``ResolutionEngine`` and the auto-resolvers
  (manual, local-wins, remote-wins).
- ``differ``    -- LCS line diff and ``apply_ops``.
- ``archive``   -- ``export_years``: yearly plain-text archive files.
- ``locks``     -- ``DateLocks``: per-date serialisation.
- ``models``    -- ``DiaryEntry``, ``ConflictHunk``, ``Episode``,
  ``DateSyncResult``, ``SyncReport``: core data contracts.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from diary_sync.remote import DirectoryRemoteSource
    from diary_sync.storage import (
        SqliteConflictStore,
        SqliteDatabase,
        SqliteEntryStore,
    )
    from diary_sync.sync import (
        DateLocks,
        ResolutionEngine,
        SyncEngine,
        format_sync_report,
    )

    db = SqliteDatabase(Path("diary.db"))
    entries, conflicts = SqliteEntryStore(db), SqliteConflictStore(db)
    locks = DateLocks()

    engine = SyncEngine(
        entries,
        conflicts,
        DirectoryRemoteSource(Path("~/Diary")),
        locks=locks,
    )
    print(format_sync_report(engine.sync_all()))

    resolver = ResolutionEngine(entries, conflicts, locks)
    for summary in resolver.list_episodes():
        resolver.commit_episode(summary.diary_date, summary.sync_datetime)
"""

from .engine import SyncEngine
from .locks import DateLocks
from .models import (
    ConflictHunk,
    DateSyncResult,
    DiaryEntry,
    DiffType,
    Episode,
    EpisodeSummary,
    SyncOutcome,
    SyncReport,
)
from .reporter import (
    episode_to_json,
    format_episode,
    format_sync_report,
    report_to_json,
    summaries_to_json,
)
from .resolver import ResolutionEngine, create_auto_resolver

__all__ = [
    "ConflictHunk",
    "DateLocks",
    "DateSyncResult",
    "DiaryEntry",
    "DiffType",
    "Episode",
    "EpisodeSummary",
    "ResolutionEngine",
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
    "create_auto_resolver",
    "episode_to_json",
    "format_episode",
    "format_sync_report",
    "report_to_json",
    "summaries_to_json",
]
