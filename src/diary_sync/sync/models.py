"""Pydantic models for the diary sync engine.

Defines the core data contracts used across all sync modules:

- ``DiffType``: Polarity of a conflict hunk (``add`` / ``rem``).
- ``SyncOutcome``: Per-date result of a sync pass.
- ``DiaryEntry``: The canonical text stored for one date.
- ``CacheEntry``: A timestamped note waiting to be merged into an entry.
- ``ConflictHunk``: One changed line inside a conflict episode.
- ``EpisodeSummary`` / ``Episode``: A conflict episode, summarised or full.
- ``DateSyncResult``: Outcome of syncing one date.
- ``SyncReport``: Aggregate results for a sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel


class DiffType(str, Enum):
    """Polarity of a conflict hunk.

    ``ADD`` lines exist only in the remote copy (candidates to pull in);
    ``REM`` lines exist only in the local copy (candidates to drop).
    """

    ADD = "add"
    REM = "rem"


class SyncOutcome(str, Enum):
    """Possible results of syncing one date."""

    UPDATED = "updated"
    CREATED = "created"
    CONFLICTED = "conflicted"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class DiaryEntry(BaseModel):
    """Text stored for one calendar date.

    Attributes:
        diary_date: The entry's date (unique key).
        diary_text: Full body text.
        last_modified: UTC timestamp of the last write.
    """

    diary_date: date
    diary_text: str
    last_modified: datetime

    model_config = {"frozen": True}


class CacheEntry(BaseModel):
    """Text jotted down at a point in time, not yet part of any entry.

    Attributes:
        diary_datetime: UTC timestamp the note was cached at (unique key).
        diary_text: The note.
    """

    diary_datetime: datetime
    diary_text: str

    model_config = {"frozen": True}

    @property
    def local_date(self) -> date:
        """Calendar date of the note in the server's local time zone."""
        return self.diary_datetime.astimezone().date()


class ConflictHunk(BaseModel):
    """A single line-level difference inside a conflict episode.

    Attributes:
        id: Globally unique identifier.
        sync_datetime: Timestamp of the sync run that produced the hunk.
        diary_date: Date the hunk applies to.
        diff_type: ``add`` or ``rem``.
        diff_text: Literal line content.
        position: Ordinal within the episode's edit script.
        line_number: Anchor in the local snapshot (see ``differ.DiffOp``).
        included: Whether the hunk participates in the eventual commit.
    """

    id: str
    sync_datetime: datetime
    diary_date: date
    diff_type: DiffType
    diff_text: str
    position: int
    line_number: int
    included: bool = True

    model_config = {"frozen": True}

    def as_op(self) -> tuple[DiffType, str, int, int]:
        """Return the hunk in ``differ.apply_ops`` tuple form."""
        return (
            self.diff_type,
            self.diff_text,
            self.position,
            self.line_number,
        )


class EpisodeSummary(BaseModel):
    """Lightweight view of one conflict episode."""

    diary_date: date
    sync_datetime: datetime
    hunk_count: int
    included_count: int

    model_config = {"frozen": True}


class Episode(BaseModel):
    """All hunks produced by one sync run for one date.

    Attributes:
        diary_date: Date of the episode.
        sync_datetime: Timestamp of the producing sync run.
        local_text: Local entry text at episode creation.
        hunks: Hunks in edit-script order.
    """

    diary_date: date
    sync_datetime: datetime
    local_text: str
    hunks: list[ConflictHunk] = []

    model_config = {"frozen": True}

    @property
    def additions(self) -> list[ConflictHunk]:
        """Hunks whose diff_type is ADD."""
        return [h for h in self.hunks if h.diff_type == DiffType.ADD]

    @property
    def removals(self) -> list[ConflictHunk]:
        """Hunks whose diff_type is REM."""
        return [h for h in self.hunks if h.diff_type == DiffType.REM]

    def summary(self) -> EpisodeSummary:
        """Summarise this episode."""
        return EpisodeSummary(
            diary_date=self.diary_date,
            sync_datetime=self.sync_datetime,
            hunk_count=len(self.hunks),
            included_count=sum(1 for h in self.hunks if h.included),
        )


class DateSyncResult(BaseModel):
    """Result of syncing one date.

    Attributes:
        diary_date: The date that was synced.
        outcome: What happened.
        success: False only when ``outcome`` is FAILED.
        sync_datetime: Episode key when ``outcome`` is CONFLICTED.
        hunk_count: Number of hunks materialised.
        error: Error message when the sync failed.
        error_kind: ``error_type`` slug of the failure.
    """

    diary_date: date
    outcome: SyncOutcome
    success: bool = True
    sync_datetime: datetime | None = None
    hunk_count: int = 0
    error: str | None = None
    error_kind: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a sync run.

    Attributes:
        results: Individual per-date results, in date order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    results: list[DateSyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with(self, outcome: SyncOutcome) -> list[DateSyncResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def updated(self) -> list[DateSyncResult]:
        """Results where outcome is UPDATED."""
        return self._with(SyncOutcome.UPDATED)

    @property
    def created(self) -> list[DateSyncResult]:
        """Results where outcome is CREATED."""
        return self._with(SyncOutcome.CREATED)

    @property
    def conflicted(self) -> list[DateSyncResult]:
        """Results where outcome is CONFLICTED."""
        return self._with(SyncOutcome.CONFLICTED)

    @property
    def unchanged(self) -> list[DateSyncResult]:
        """Results where outcome is UNCHANGED."""
        return self._with(SyncOutcome.UNCHANGED)

    @property
    def failed(self) -> list[DateSyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by outcome.
        """
        lines = [
            "Diary sync report",
            f"  Created:    {len(self.created)}",
            f"  Updated:    {len(self.updated)}",
            f"  Conflicted: {len(self.conflicted)}",
            f"  Unchanged:  {len(self.unchanged)}",
            f"  Failed:     {len(self.failed)}",
            f"  Total:      {len(self.results)}",
        ]
        return "\n".join(lines)
