"""Diary entry tool handlers for MCP server.

This module implements entry operations: get, put, search and list, plus
the note cache (cache, merge).
All tools use async handlers with run_sync() to bridge the synchronous
DiaryService calls.
"""

from __future__ import annotations

import mcp.types as types

from ...core.async_utils import run_sync
from ...errors import NotFoundError
from ...service import DiaryService
from ...sync.models import CacheEntry, DiaryEntry
from ...validators import parse_date
from .registry import ToolSpec

# Tool definitions for list_tools()
ENTRY_TOOLS = [
    types.Tool(
        name="entry_get",
        description="Get the diary entry for one date. Returns the full text and its last-modified timestamp.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Entry date, YYYY-MM-DD (required)",
                },
            },
            "required": ["date"],
        },
    ),
    types.Tool(
        name="entry_put",
        description="Create or overwrite the diary entry for one date. Writes directly without diffing against the remote.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Entry date, YYYY-MM-DD (required)",
                },
                "text": {
                    "type": "string",
                    "description": "Full entry text (required)",
                },
            },
            "required": ["date", "text"],
        },
    ),
    types.Tool(
        name="entry_search",
        description="Search diary entries and cached notes. A query of YYYY-MM-DD, YYYY-MM, YYYY or 'today' selects by date; anything else matches the text (case-sensitive substring).",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Date pattern or text to find (required)",
                },
            },
            "required": ["query"],
        },
    ),
    types.Tool(
        name="entry_list",
        description="List stored entry dates, newest first, one page at a time.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={
            "type": "object",
            "properties": {
                "min_date": {
                    "type": "string",
                    "description": "Earliest date to include, YYYY-MM-DD (optional)",
                },
                "max_date": {
                    "type": "string",
                    "description": "Latest date to include, YYYY-MM-DD (optional)",
                },
                "start": {
                    "type": "integer",
                    "description": "Offset of the first date (default: 0)",
                    "default": 0,
                    "minimum": 0,
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum dates to return (default: 50, max: 1000)",
                    "default": 50,
                    "minimum": 1,
                    "maximum": 1000,
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="entry_cache",
        description="Jot down a note now without choosing a date. The note is timestamped and kept aside until entry_cache_merge appends it to that day's entry.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "text": {
                    "type": "string",
                    "description": "Note text (required)",
                },
            },
            "required": ["text"],
        },
    ),
    types.Tool(
        name="entry_cache_merge",
        description="Append every cached note to the entry of the day it was taken, creating entries as needed. Days with a pending conflict keep their notes until the conflict is resolved.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
]


def entry_to_json(entry: DiaryEntry) -> dict:
    return {
        "date": entry.diary_date.isoformat(),
        "text": entry.diary_text,
        "last_modified": entry.last_modified.isoformat(),
    }


def cached_to_json(note: CacheEntry) -> dict:
    return {
        "cached_at": note.diary_datetime.isoformat(),
        "text": note.diary_text,
    }


def _preview(text: str) -> str:
    return text.lstrip().split("\n", 1)[0][:80]


def _optional_date(args: dict, key: str):
    value = args.get(key)
    return parse_date(value, key) if value else None


async def _handle_get(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_get tool."""
    diary_date = parse_date(args.get("date", ""))
    entry = await run_sync(service.get_entry, diary_date)
    if entry is None:
        raise NotFoundError(f"No diary entry for {diary_date}")

    text = (
        f"# {entry.diary_date}\n"
        f"Last modified: {entry.last_modified.strftime('%Y-%m-%d %H:%M')}\n\n"
        f"{entry.diary_text}"
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=entry_to_json(entry),
    )


async def _handle_put(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_put tool."""
    diary_date = parse_date(args.get("date", ""))
    text = args.get("text")
    if text is None:
        raise ValueError("text is required")
    entry = await run_sync(service.put_entry, diary_date, text)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=f"Saved diary entry for {diary_date}."
            )
        ],
        structuredContent=entry_to_json(entry),
    )


async def _handle_search(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_search tool.

    Returns one line per match with the first line of the entry as a
    preview, followed by matching cached notes.
    """
    query = args.get("query", "")
    entries = await run_sync(service.search, query)
    cached = await run_sync(service.search_cache, query)

    if not entries and not cached:
        text = f"No diary entries match '{query}'."
    else:
        lines = [f"Found {len(entries)} entries matching '{query}':"]
        for entry in entries:
            lines.append(f"- {entry.diary_date}: {_preview(entry.diary_text)}")
        if cached:
            lines.append(f"Cached notes ({len(cached)}):")
            for note in cached:
                lines.append(
                    f"- {note.diary_datetime.isoformat()}: {_preview(note.diary_text)}"
                )
        text = "\n".join(lines)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "query": query,
            "entries": [entry_to_json(e) for e in entries],
            "cached": [cached_to_json(c) for c in cached],
        },
    )


async def _handle_list(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_list tool."""
    min_date = _optional_date(args, "min_date")
    max_date = _optional_date(args, "max_date")
    start = int(args.get("start", 0))
    limit = int(args.get("limit", 50))

    dates = await run_sync(
        service.list_entries, min_date, max_date, start, limit
    )
    if dates:
        text = "\n".join(d.isoformat() for d in dates)
    else:
        text = "No diary entries in this window."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "start": start,
            "limit": limit,
            "dates": [d.isoformat() for d in dates],
        },
    )


async def _handle_cache(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_cache tool."""
    text = args.get("text")
    if text is None:
        raise ValueError("text is required")
    note = await run_sync(service.cache_text, text)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Cached note at {note.diary_datetime.isoformat()}.",
            )
        ],
        structuredContent=cached_to_json(note),
    )


async def _handle_cache_merge(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Handle entry_cache_merge tool."""
    result = await run_sync(service.merge_cache)
    merged = [e.diary_date.isoformat() for e in result.merged]
    kept = [d.isoformat() for d in result.kept]

    lines = []
    if merged:
        lines.append(f"Merged cached notes into: {', '.join(merged)}")
    if kept:
        lines.append(
            f"Kept cached (conflict pending): {', '.join(kept)}. "
            "Resolve with conflict_show and conflict_commit, then merge again."
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text="\n".join(lines) or "No cached notes to merge."
            )
        ],
        structuredContent={"merged": merged, "kept": kept},
    )


_VIEW = frozenset({"DIARY_VIEW"})
_WRITE = frozenset({"DIARY_WRITE"})

ENTRY_SPECS: list[ToolSpec] = [
    ToolSpec(tool=ENTRY_TOOLS[0], permissions=_VIEW, handler=_handle_get),
    ToolSpec(tool=ENTRY_TOOLS[1], permissions=_WRITE, handler=_handle_put),
    ToolSpec(tool=ENTRY_TOOLS[2], permissions=_VIEW, handler=_handle_search),
    ToolSpec(tool=ENTRY_TOOLS[3], permissions=_VIEW, handler=_handle_list),
    ToolSpec(tool=ENTRY_TOOLS[4], permissions=_WRITE, handler=_handle_cache),
    ToolSpec(tool=ENTRY_TOOLS[5], permissions=_WRITE, handler=_handle_cache_merge),
]
