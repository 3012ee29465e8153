"""Conflict resolution for diary sync episodes.

Provides:

- ``ResolutionEngine``: list, inspect, toggle, commit, or discard the hunks
  of a conflict episode.  Commits rebuild the entry from the episode's
  local snapshot plus the hunks still included.
- Auto-resolvers applied by the sync engine right after an episode is
  materialised:

  - ``ManualResolver``: leaves the episode pending for a human.
  - ``LocalWinsResolver``: discards the episode (local text kept).
  - ``RemoteWinsResolver``: commits every hunk (remote text taken).

The ``create_auto_resolver()`` factory maps config strategy strings to
resolver instances.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date, datetime
from typing import Protocol

from diary_sync.errors import InvalidRequestError, NotFoundError
from diary_sync.storage.base import ConflictStore, EntryStore
from diary_sync.sync.differ import apply_ops, join_lines, split_lines
from diary_sync.sync.locks import DateLocks
from diary_sync.sync.models import (
    ConflictHunk,
    DiaryEntry,
    DiffType,
    Episode,
    EpisodeSummary,
)

logger = logging.getLogger(__name__)


def merge_episode(
    episode: Episode, hunks: Iterable[ConflictHunk] | None = None
) -> str:
    """Build the final text for *episode*.

    Args:
        episode: The episode to merge.
        hunks: Hunks to apply.  Defaults to the episode's included hunks.

    Returns:
        The local snapshot with included ``rem`` lines dropped and included
        ``add`` lines inserted at their original positions.  A trailing
        newline on the snapshot is preserved.
    """
    if hunks is None:
        hunks = [h for h in episode.hunks if h.included]
    lines = apply_ops(
        split_lines(episode.local_text), (h.as_op() for h in hunks)
    )
    text = join_lines(lines)
    if lines and episode.local_text.endswith("\n"):
        text += "\n"
    return text


class EpisodeListing:
    """Lazy, restartable view over episode summaries.

    Every iteration re-queries the store, so the listing reflects commits
    and discards made between iterations.
    """

    def __init__(
        self, conflicts: ConflictStore, diary_date: date | None = None
    ) -> None:
        self._conflicts = conflicts
        self._diary_date = diary_date

    def __iter__(self) -> Iterator[EpisodeSummary]:
        yield from self._conflicts.list_episodes(self._diary_date)


# ---------------------------------------------------------------------------
# Resolution engine
# ---------------------------------------------------------------------------


class ResolutionEngine:
    """Mediate human resolution of conflict episodes.

    Args:
        entries: Entry store receiving committed text.
        conflicts: Conflict store holding the episodes.
        locks: Per-date locks shared with the sync engine.
    """

    def __init__(
        self,
        entries: EntryStore,
        conflicts: ConflictStore,
        locks: DateLocks,
    ) -> None:
        self.entries = entries
        self.conflicts = conflicts
        self.locks = locks

    def list_episodes(
        self, date_filter: date | None = None
    ) -> EpisodeListing:
        """Return episode summaries, optionally for a single date."""
        return EpisodeListing(self.conflicts, date_filter)

    def show_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> Episode:
        """Return the ordered hunk set of one episode.

        Raises:
            NotFoundError: If the episode does not exist.
        """
        episode = self.conflicts.get_episode(diary_date, sync_datetime)
        if episode is None:
            raise NotFoundError(
                f"No conflict episode for {diary_date} at "
                f"{sync_datetime.isoformat()}"
            )
        return episode

    def _get_hunk(self, hunk_id: str) -> ConflictHunk:
        hunk = self.conflicts.get_hunk(hunk_id)
        if hunk is None:
            raise NotFoundError(f"Conflict hunk {hunk_id} not found")
        return hunk

    def toggle_hunk(
        self, hunk_id: str, direction: DiffType | str
    ) -> ConflictHunk:
        """Flip whether a hunk is included in the eventual commit.

        Args:
            hunk_id: Hunk to toggle.
            direction: Must equal the hunk's own ``diff_type``.

        Returns:
            The hunk with its new inclusion state.

        Raises:
            InvalidRequestError: If *direction* is unknown or mismatched.
            NotFoundError: If the hunk does not exist.
        """
        try:
            wanted = DiffType(direction)
        except ValueError:
            raise InvalidRequestError(
                f"Invalid direction '{direction}': expected 'add' or 'rem'"
            ) from None

        hunk = self._get_hunk(hunk_id)
        with self.locks.hold(hunk.diary_date):
            hunk = self._get_hunk(hunk_id)
            if hunk.diff_type != wanted:
                raise InvalidRequestError(
                    f"Hunk {hunk_id} is '{hunk.diff_type.value}', "
                    f"cannot toggle as '{wanted.value}'"
                )
            updated = self.conflicts.set_included(hunk_id, not hunk.included)
        logger.debug(
            "Hunk %s (%s) included=%s",
            hunk_id,
            updated.diff_type.value,
            updated.included,
        )
        return updated

    def discard_hunk(self, hunk_id: str) -> ConflictHunk:
        """Remove a single hunk so it never reaches the commit.

        Returns:
            The removed hunk.

        Raises:
            NotFoundError: If the hunk does not exist.
        """
        hunk = self._get_hunk(hunk_id)
        with self.locks.hold(hunk.diary_date):
            if not self.conflicts.delete_hunk(hunk_id):
                raise NotFoundError(f"Conflict hunk {hunk_id} not found")
        logger.debug("Discarded hunk %s", hunk_id)
        return hunk

    def commit_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> DiaryEntry:
        """Apply the included hunks, store the result, clear the episode.

        Raises:
            NotFoundError: If the episode does not exist (including when it
                was already committed or discarded).
        """
        with self.locks.hold(diary_date):
            episode = self.show_episode(diary_date, sync_datetime)
            merged = merge_episode(episode)
            entry = self.conflicts.commit_episode(
                diary_date, sync_datetime, merged
            )
        logger.info(
            "Committed episode %s @ %s (%d hunks)",
            diary_date,
            sync_datetime.isoformat(),
            len(episode.hunks),
        )
        return entry

    def discard_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> int:
        """Delete the episode, keeping the local text as-is.

        Returns:
            Number of hunks removed.

        Raises:
            NotFoundError: If the episode does not exist.
        """
        with self.locks.hold(diary_date):
            removed = self.conflicts.delete_episode(
                diary_date, sync_datetime
            )
        if removed < 0:
            raise NotFoundError(
                f"No conflict episode for {diary_date} at "
                f"{sync_datetime.isoformat()}"
            )
        logger.info(
            "Discarded episode %s @ %s (%d hunks)",
            diary_date,
            sync_datetime.isoformat(),
            removed,
        )
        return removed

    def resolve_episode(
        self, diary_date: date, sync_datetime: datetime, strategy: str
    ) -> DiaryEntry | None:
        """Resolve a whole episode with a bulk strategy.

        Args:
            strategy: ``"local-wins"`` discards the episode;
                ``"remote-wins"`` commits every hunk regardless of toggles.

        Returns:
            The entry after resolution.

        Raises:
            InvalidRequestError: If the strategy is not recognised.
            NotFoundError: If the episode does not exist.
        """
        if strategy == "local-wins":
            self.discard_episode(diary_date, sync_datetime)
            return self.entries.get(diary_date)
        if strategy == "remote-wins":
            with self.locks.hold(diary_date):
                episode = self.show_episode(diary_date, sync_datetime)
                merged = merge_episode(episode, episode.hunks)
                return self.conflicts.commit_episode(
                    diary_date, sync_datetime, merged
                )
        raise InvalidRequestError(
            f"Unknown resolution strategy: '{strategy}'. "
            "Valid strategies: ['local-wins', 'remote-wins']"
        )


# ---------------------------------------------------------------------------
# Auto-resolvers
# ---------------------------------------------------------------------------


class AutoResolver(Protocol):
    """Protocol that all auto-resolvers must satisfy."""

    def resolve(self, episode: Episode) -> str:
        """Decide what to do with a freshly materialised episode.

        Returns:
            ``"manual"`` (leave pending), ``"local-wins"`` or
            ``"remote-wins"``.
        """
        ...  # pragma: no cover


class ManualResolver:
    """Leave every episode pending for human review."""

    def resolve(self, episode: Episode) -> str:
        """Always return ``"manual"``."""
        return "manual"


class LocalWinsResolver:
    """Always keep the local text."""

    def resolve(self, episode: Episode) -> str:
        """Always return ``"local-wins"``."""
        return "local-wins"


class RemoteWinsResolver:
    """Always take the remote text."""

    def resolve(self, episode: Episode) -> str:
        """Always return ``"remote-wins"``."""
        return "remote-wins"


_STRATEGY_MAP: dict[str, type] = {
    "manual": ManualResolver,
    "local-wins": LocalWinsResolver,
    "remote-wins": RemoteWinsResolver,
}


def create_auto_resolver(strategy: str) -> AutoResolver:
    """Create an auto-resolver for the given strategy string.

    Args:
        strategy: One of ``"manual"``, ``"local-wins"``, ``"remote-wins"``.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
