"""Conflict resolution tool handlers for MCP server.

This module implements the episode lifecycle: list, show, toggle and
discard single hunks, then commit or discard the whole episode.  An
episode is addressed by ``(date, sync_datetime)``; the sync_datetime
comes from ``conflict_list`` or the ``diary_sync`` report.
"""

from __future__ import annotations

import mcp.types as types

from ...core.async_utils import run_sync
from ...service import DiaryService
from ...sync.reporter import (
    episode_to_json,
    format_episode,
    summaries_to_json,
)
from ...validators import parse_date, parse_sync_datetime
from .entries import entry_to_json
from .registry import ToolSpec

_EPISODE_PROPERTIES = {
    "date": {
        "type": "string",
        "description": "Episode date, YYYY-MM-DD (required)",
    },
    "sync_datetime": {
        "type": "string",
        "description": "Episode sync timestamp, ISO 8601, as shown by conflict_list (required)",
    },
}

_HUNK_PROPERTIES = {
    "hunk_id": {
        "type": "string",
        "description": "Hunk id, as shown by conflict_show (required)",
    },
}

# Tool definitions for list_tools()
CONFLICT_TOOLS = [
    types.Tool(
        name="conflict_list",
        description="List pending conflict episodes with hunk counts, ordered by date then sync time.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Only episodes for this date, YYYY-MM-DD (optional)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="conflict_show",
        description="Show one conflict episode: every hunk with its id, polarity (+ add / - rem) and inclusion mark, plus a diff of what a commit would write.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": dict(_EPISODE_PROPERTIES),
            "required": ["date", "sync_datetime"],
        },
    ),
    types.Tool(
        name="conflict_toggle",
        description="Flip whether a hunk is included in the commit. 'direction' must equal the hunk's type ('add' or 'rem'). Toggling twice restores the original state.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False, destructiveHint=False
        ),
        inputSchema={
            "type": "object",
            "properties": {
                **_HUNK_PROPERTIES,
                "direction": {
                    "type": "string",
                    "enum": ["add", "rem"],
                    "description": "The hunk's type (required)",
                },
            },
            "required": ["hunk_id", "direction"],
        },
    ),
    types.Tool(
        name="conflict_discard_hunk",
        description="Remove one hunk from its episode so it never reaches the commit.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False, destructiveHint=True
        ),
        inputSchema={
            "type": "object",
            "properties": dict(_HUNK_PROPERTIES),
            "required": ["hunk_id"],
        },
    ),
    types.Tool(
        name="conflict_commit",
        description="Commit an episode: apply the included hunks to the local text as it was when the episode was created, save the entry, and delete the episode.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False, destructiveHint=True
        ),
        inputSchema={
            "type": "object",
            "properties": dict(_EPISODE_PROPERTIES),
            "required": ["date", "sync_datetime"],
        },
    ),
    types.Tool(
        name="conflict_discard",
        description="Discard an episode, keeping the local entry unchanged.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False, destructiveHint=True
        ),
        inputSchema={
            "type": "object",
            "properties": dict(_EPISODE_PROPERTIES),
            "required": ["date", "sync_datetime"],
        },
    ),
    types.Tool(
        name="conflict_resolve",
        description="Resolve a whole episode at once: 'local-wins' discards it, 'remote-wins' commits every hunk regardless of toggles.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False, destructiveHint=True
        ),
        inputSchema={
            "type": "object",
            "properties": {
                **_EPISODE_PROPERTIES,
                "strategy": {
                    "type": "string",
                    "enum": ["local-wins", "remote-wins"],
                    "description": "Resolution strategy (required)",
                },
            },
            "required": ["date", "sync_datetime", "strategy"],
        },
    ),
]


def _episode_key(args: dict):
    return (
        parse_date(args.get("date", "")),
        parse_sync_datetime(args.get("sync_datetime", "")),
    )


def _hunk_id(args: dict) -> str:
    hunk_id = str(args.get("hunk_id", "")).strip()
    if not hunk_id:
        raise ValueError("hunk_id is required")
    return hunk_id


def _text_result(text: str, structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_list(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_list tool."""
    raw_date = args.get("date")
    diary_date = parse_date(raw_date) if raw_date else None
    summaries = await run_sync(
        lambda: list(service.list_episodes(diary_date))
    )

    if not summaries:
        text = "No pending conflict episodes."
    else:
        lines = [f"{len(summaries)} pending episodes:"]
        for s in summaries:
            lines.append(
                f"- {s.diary_date} @ {s.sync_datetime.isoformat()}: "
                f"{s.hunk_count} hunks ({s.included_count} included)"
            )
        text = "\n".join(lines)
    return _text_result(text, {"episodes": summaries_to_json(summaries)})


async def _handle_show(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_show tool."""
    episode = await run_sync(service.show_episode, *_episode_key(args))
    return _text_result(format_episode(episode), episode_to_json(episode))


async def _handle_toggle(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_toggle tool."""
    hunk = await run_sync(
        service.toggle_hunk, _hunk_id(args), args.get("direction", "")
    )
    state = "included" if hunk.included else "excluded"
    return _text_result(
        f"Hunk {hunk.id} ({hunk.diff_type.value} '{hunk.diff_text}') is now {state}.",
        {"hunk_id": hunk.id, "included": hunk.included},
    )


async def _handle_discard_hunk(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_discard_hunk tool."""
    hunk = await run_sync(service.discard_hunk, _hunk_id(args))
    return _text_result(
        f"Discarded hunk {hunk.id} ({hunk.diff_type.value} '{hunk.diff_text}').",
        {"hunk_id": hunk.id, "discarded": True},
    )


async def _handle_commit(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_commit tool."""
    entry = await run_sync(service.commit_episode, *_episode_key(args))
    return _text_result(
        f"Committed episode; entry for {entry.diary_date} updated.",
        entry_to_json(entry),
    )


async def _handle_discard(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_discard tool."""
    diary_date, sync_datetime = _episode_key(args)
    removed = await run_sync(
        service.discard_episode, diary_date, sync_datetime
    )
    return _text_result(
        f"Discarded episode for {diary_date} ({removed} hunks); local entry kept.",
        {"date": diary_date.isoformat(), "hunks_removed": removed},
    )


async def _handle_resolve(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle conflict_resolve tool."""
    diary_date, sync_datetime = _episode_key(args)
    strategy = args.get("strategy", "")
    entry = await run_sync(
        service.resolve_episode, diary_date, sync_datetime, strategy
    )
    structured = entry_to_json(entry) if entry is not None else {}
    return _text_result(
        f"Resolved episode for {diary_date} with {strategy}.",
        structured,
    )


_VIEW = frozenset({"DIARY_VIEW"})
_RESOLVE = frozenset({"CONFLICT_RESOLVE"})

CONFLICT_SPECS: list[ToolSpec] = [
    ToolSpec(tool=CONFLICT_TOOLS[0], permissions=_VIEW, handler=_handle_list),
    ToolSpec(tool=CONFLICT_TOOLS[1], permissions=_VIEW, handler=_handle_show),
    ToolSpec(
        tool=CONFLICT_TOOLS[2], permissions=_RESOLVE, handler=_handle_toggle
    ),
    ToolSpec(
        tool=CONFLICT_TOOLS[3],
        permissions=_RESOLVE,
        handler=_handle_discard_hunk,
    ),
    ToolSpec(
        tool=CONFLICT_TOOLS[4], permissions=_RESOLVE, handler=_handle_commit
    ),
    ToolSpec(
        tool=CONFLICT_TOOLS[5], permissions=_RESOLVE, handler=_handle_discard
    ),
    ToolSpec(
        tool=CONFLICT_TOOLS[6], permissions=_RESOLVE, handler=_handle_resolve
    ),
]
