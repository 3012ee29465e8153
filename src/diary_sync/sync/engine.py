"""Sync orchestrator comparing local diary entries with the remote copy.

The ``SyncEngine`` ties together the entry store, conflict store, remote
source, differ and auto-resolver.  For one date it:

1. Reads the local entry.
2. Fetches the remote text.
3. Creates the entry when only the remote has it.
4. Leaves identical or remote-less dates alone.
5. Materialises diverging dates as a conflict episode.
6. Applies the configured auto-resolver to the new episode.

Bulk runs isolate errors per date: a single failure does not abort the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone

from diary_sync.core.async_utils import gather_limited, run_sync_limited
from diary_sync.errors import (
    ConflictError,
    DiaryError,
    UpstreamUnavailableError,
)
from diary_sync.remote.base import RemoteSource
from diary_sync.storage.base import ConflictStore, EntryStore
from diary_sync.sync.differ import diff_lines, split_lines
from diary_sync.sync.locks import DateLocks
from diary_sync.sync.models import (
    DateSyncResult,
    Episode,
    SyncOutcome,
    SyncReport,
)
from diary_sync.sync.resolver import create_auto_resolver, merge_episode

logger = logging.getLogger(__name__)

PENDING_POLICIES = ("reject", "supersede")


class SyncEngine:
    """Synchronize diary dates against a remote source.

    Args:
        entries: Local entry store.
        conflicts: Conflict store receiving new episodes.
        remote: Remote source to compare against.
        locks: Per-date locks shared with the resolution engine.
        pending_policy: ``"reject"`` or ``"supersede"``; what to do when a
            date already has an unresolved episode.
        conflict_strategy: Auto-resolver strategy for new episodes.
        fetch_timeout: Per-date timeout (seconds) for async bulk syncs.
    """

    def __init__(
        self,
        entries: EntryStore,
        conflicts: ConflictStore,
        remote: RemoteSource,
        locks: DateLocks | None = None,
        pending_policy: str = "reject",
        conflict_strategy: str = "manual",
        fetch_timeout: float = 30.0,
    ) -> None:
        if pending_policy not in PENDING_POLICIES:
            raise ValueError(
                f"Unknown pending policy: '{pending_policy}'. "
                f"Valid policies: {list(PENDING_POLICIES)}"
            )
        self.entries = entries
        self.conflicts = conflicts
        self.remote = remote
        self.locks = locks or DateLocks()
        self.pending_policy = pending_policy
        self.conflict_strategy = conflict_strategy
        self.fetch_timeout = fetch_timeout
        self.resolver = create_auto_resolver(conflict_strategy)

    # ------------------------------------------------------------------
    # Single date
    # ------------------------------------------------------------------

    def sync_date(self, diary_date: date) -> DateSyncResult:
        """Synchronize one date.

        Returns:
            A ``DateSyncResult`` describing what happened.

        Raises:
            ConflictError: If an episode is pending and the policy is
                ``reject``.
            UpstreamUnavailableError: If the remote cannot be read.
            StorageFailureError: If the local stores fail.
        """
        with self.locks.hold(diary_date):
            return self._sync_locked(diary_date)

    def _sync_locked(self, diary_date: date) -> DateSyncResult:
        if self.pending_policy == "reject" and list(
            self.conflicts.list_episodes(diary_date)
        ):
            raise ConflictError(f"Conflict pending for {diary_date}")

        local = self.entries.get(diary_date)
        remote_text = self.remote.fetch(diary_date)

        if remote_text is None:
            logger.debug("No remote copy for %s", diary_date)
            return DateSyncResult(
                diary_date=diary_date, outcome=SyncOutcome.UNCHANGED
            )

        if local is None:
            self.entries.put(diary_date, remote_text)
            logger.info("Created %s from remote", diary_date)
            return DateSyncResult(
                diary_date=diary_date, outcome=SyncOutcome.CREATED
            )

        local_lines = split_lines(local.diary_text)
        remote_lines = split_lines(remote_text)
        # Only a BOM and CRLF line endings are ignored; whitespace is content
        if local_lines == remote_lines:
            return DateSyncResult(
                diary_date=diary_date, outcome=SyncOutcome.UNCHANGED
            )

        ops = list(diff_lines(local_lines, remote_lines))
        sync_datetime = datetime.now(timezone.utc)
        episode = self.conflicts.create_episode(
            diary_date,
            sync_datetime,
            local.diary_text,
            ops,
            supersede=self.pending_policy == "supersede",
        )
        logger.info(
            "Conflict on %s: %d hunks (%d add, %d rem)",
            diary_date,
            len(episode.hunks),
            len(episode.additions),
            len(episode.removals),
        )
        return self._auto_resolve(episode)

    def _auto_resolve(self, episode: Episode) -> DateSyncResult:
        decision = self.resolver.resolve(episode)
        if decision == "remote-wins":
            self.conflicts.commit_episode(
                episode.diary_date,
                episode.sync_datetime,
                merge_episode(episode, episode.hunks),
            )
            logger.info("Auto-resolved %s: remote wins", episode.diary_date)
            return DateSyncResult(
                diary_date=episode.diary_date,
                outcome=SyncOutcome.UPDATED,
                hunk_count=len(episode.hunks),
            )
        if decision == "local-wins":
            self.conflicts.delete_episode(
                episode.diary_date, episode.sync_datetime
            )
            logger.info("Auto-resolved %s: local wins", episode.diary_date)
            return DateSyncResult(
                diary_date=episode.diary_date,
                outcome=SyncOutcome.UNCHANGED,
                hunk_count=len(episode.hunks),
            )
        return DateSyncResult(
            diary_date=episode.diary_date,
            outcome=SyncOutcome.CONFLICTED,
            sync_datetime=episode.sync_datetime,
            hunk_count=len(episode.hunks),
        )

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def candidate_dates(self) -> list[date]:
        """Return the union of local entry dates and remote dates, oldest first.

        A remote that cannot be listed leaves only the local dates; each
        of those still fetches its own remote copy and fails on its own.
        """
        dates = set(self.entries.list_dates())
        try:
            dates.update(self.remote.list_dates())
        except UpstreamUnavailableError as exc:
            logger.warning(
                "Cannot list remote dates, syncing %d local dates only: %s",
                len(dates),
                exc,
            )
        return sorted(dates)

    def _failed(self, diary_date: date, exc: Exception) -> DateSyncResult:
        kind = exc.error_type if isinstance(exc, DiaryError) else "server_error"
        return DateSyncResult(
            diary_date=diary_date,
            outcome=SyncOutcome.FAILED,
            success=False,
            error=str(exc),
            error_kind=kind,
        )

    def _safe_sync(self, diary_date: date) -> DateSyncResult:
        try:
            return self.sync_date(diary_date)
        except Exception as exc:
            logger.error("Error syncing %s: %s", diary_date, exc)
            return self._failed(diary_date, exc)

    def sync_all(self, dates: Iterable[date] | None = None) -> SyncReport:
        """Synchronize many dates, one at a time.

        Args:
            dates: Dates to sync.  Defaults to ``candidate_dates()``.

        Returns:
            A ``SyncReport`` with one result per date.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        targets = sorted(set(dates)) if dates is not None else self.candidate_dates()
        results = [self._safe_sync(d) for d in targets]
        completed_at = datetime.now(timezone.utc).isoformat()
        report = SyncReport(
            results=results,
            started_at=started_at,
            completed_at=completed_at,
        )
        logger.info(
            "Sync run: %d dates, %d conflicted, %d failed",
            len(results),
            len(report.conflicted),
            len(report.failed),
        )
        return report

    async def _sync_one_async(self, diary_date: date) -> DateSyncResult:
        try:
            return await run_sync_limited(
                self.sync_date, diary_date, timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Sync of %s timed out after %.1fs",
                diary_date,
                self.fetch_timeout,
            )
            return DateSyncResult(
                diary_date=diary_date,
                outcome=SyncOutcome.FAILED,
                success=False,
                error=f"Timed out after {self.fetch_timeout}s",
                error_kind="upstream_unavailable",
            )
        except Exception as exc:
            logger.error("Error syncing %s: %s", diary_date, exc)
            return self._failed(diary_date, exc)

    async def sync_all_async(
        self, dates: Iterable[date] | None = None
    ) -> SyncReport:
        """Synchronize many dates concurrently.

        Concurrency is bounded by the semaphore set up with
        ``init_semaphore``; each date has its own timeout.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        if dates is None:
            targets = await run_sync_limited(self.candidate_dates)
        else:
            targets = sorted(set(dates))
        results = await gather_limited(
            [self._sync_one_async(d) for d in targets]
        )
        completed_at = datetime.now(timezone.utc).isoformat()
        return SyncReport(
            results=results,
            started_at=started_at,
            completed_at=completed_at,
        )
