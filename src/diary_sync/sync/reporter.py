"""Text and JSON renderings of sync reports and conflict episodes.

``format_sync_report`` and ``format_episode`` produce what a person reads;
``report_to_json``, ``episode_to_json`` and ``summaries_to_json`` produce
the ``structuredContent`` of the MCP tools.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .differ import unified_diff
from .resolver import merge_episode

if TYPE_CHECKING:
    from .models import (
        ConflictHunk,
        DateSyncResult,
        Episode,
        EpisodeSummary,
        SyncReport,
    )


def _conflict_line(r: DateSyncResult) -> str:
    stamp = r.sync_datetime.isoformat() if r.sync_datetime else "?"
    return f"{r.diary_date} @ {stamp}: {r.hunk_count} hunks"


# (heading, report attribute, line per result)
_SECTIONS: tuple[tuple[str, str, Callable[[DateSyncResult], str]], ...] = (
    ("Created from remote", "created", lambda r: str(r.diary_date)),
    (
        "Updated from remote",
        "updated",
        lambda r: f"{r.diary_date} ({r.hunk_count} hunks)",
    ),
    ("Conflicts", "conflicted", _conflict_line),
    ("Errors", "failed", lambda r: f"{r.diary_date} [{r.error_kind}]: {r.error}"),
)


def format_sync_report(report: SyncReport) -> str:
    """Summary of a sync run.

    Empty sections are left out and unchanged dates are only counted.
    """
    out = ["Diary sync report", f"Started: {report.started_at}"]
    if report.completed_at:
        out.append(f"Completed: {report.completed_at}")
    out += [
        "",
        f"Synced {len(report.results)} dates: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.conflicted)} conflicted, {len(report.failed)} failed",
        "",
    ]

    for heading, attr, render in _SECTIONS:
        results = getattr(report, attr)
        if results:
            out.append(f"{heading}:")
            out.extend(f"  {render(r)}" for r in results)
            out.append("")

    if report.unchanged:
        out.append(f"Unchanged: {len(report.unchanged)} dates")

    return "\n".join(out).rstrip()


# ------------------------------------------------------------------
# Conflict episode
# ------------------------------------------------------------------


def _hunk_line(hunk: ConflictHunk) -> str:
    sign = "+" if hunk.diff_type.value == "add" else "-"
    mark = "x" if hunk.included else " "
    return f"  [{mark}] {sign} {hunk.diff_text}  ({hunk.id})"


def format_episode(episode: Episode) -> str:
    """Format one conflict episode for interactive review.

    Lists each hunk with its inclusion marker and id, followed by a
    unified diff between the local snapshot and the text a commit would
    produce right now.

    Args:
        episode: The episode to show.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(
        f"Conflict: {episode.diary_date} @ {episode.sync_datetime.isoformat()}"
    )
    lines.append(
        f"{len(episode.additions)} additions, "
        f"{len(episode.removals)} removals"
    )
    lines.append("")

    for hunk in episode.hunks:
        lines.append(_hunk_line(hunk))
    if not episode.hunks:
        lines.append("  (no hunks left; commit keeps the local text)")
    lines.append("")

    diff_text = unified_diff(
        episode.local_text,
        merge_episode(episode),
        label_local=f"local: {episode.diary_date}",
        label_remote="commit preview",
    )
    if diff_text:
        lines.append(diff_text.rstrip())
    else:
        lines.append("(commit would not change the entry)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# structuredContent
# ------------------------------------------------------------------


def _result_to_json(r: DateSyncResult) -> dict:
    data: dict = {
        "diary_date": r.diary_date.isoformat(),
        "outcome": r.outcome.value,
        "success": r.success,
    }
    if r.sync_datetime is not None:
        data["sync_datetime"] = r.sync_datetime.isoformat()
    if r.hunk_count:
        data["hunk_count"] = r.hunk_count
    if r.error:
        data.update(error=r.error, error_kind=r.error_kind)
    return data


def report_to_json(report: SyncReport) -> dict:
    """Per-date results plus counts per outcome."""
    counts = {"total": len(report.results)}
    counts.update(
        (attr, len(getattr(report, attr)))
        for attr in ("created", "updated", "conflicted", "unchanged", "failed")
    )
    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": counts,
        "results": [_result_to_json(r) for r in report.results],
    }


def episode_to_json(episode: Episode) -> dict:
    """The episode's key and its hunks in document order."""
    return {
        "diary_date": episode.diary_date.isoformat(),
        "sync_datetime": episode.sync_datetime.isoformat(),
        "hunks": [
            h.model_dump(
                include={
                    "id",
                    "diff_type",
                    "diff_text",
                    "position",
                    "line_number",
                    "included",
                },
                mode="json",
            )
            for h in episode.hunks
        ],
    }


def summaries_to_json(summaries: Iterable[EpisodeSummary]) -> list[dict]:
    return [
        {
            **s.model_dump(include={"hunk_count", "included_count"}),
            "diary_date": s.diary_date.isoformat(),
            "sync_datetime": s.sync_datetime.isoformat(),
        }
        for s in summaries
    ]
