"""MCP tool handlers for diary sync and export.

Defines two tools:

- ``diary_sync``: sync one date, or every known date, against the remote.
- ``diary_export``: write the yearly text archive.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...service import DiaryService
from ...sync.reporter import format_sync_report, report_to_json
from ...validators import parse_date
from .registry import ToolSpec

logger = logging.getLogger(__name__)


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="diary_sync",
        description=(
            "Synchronize diary entries with the remote copy. Dates missing "
            "locally are created; diverging dates become conflict episodes "
            "to review with conflict_show. Omit 'date' to sync every date."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "Date to sync, YYYY-MM-DD (optional, default: all dates)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="diary_export",
        description=(
            "Write every entry to yearly diary_<year>.txt files in the "
            "configured archive directory. Years whose file is already newer "
            "than their latest change are skipped."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
]


async def _handle_diary_sync(
    service: DiaryService,
    args: dict[str, Any],
) -> types.CallToolResult:
    """Handle the ``diary_sync`` tool."""
    raw_date = args.get("date")
    diary_date = parse_date(raw_date) if raw_date else None

    report = await service.sync_async(diary_date)
    logger.info(
        "diary_sync(%s): %d results",
        diary_date or "all",
        len(report.results),
    )

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_report(report))
        ],
        structuredContent=report_to_json(report),
    )


async def _handle_diary_export(
    service: DiaryService,
    args: dict[str, Any],
) -> types.CallToolResult:
    """Handle the ``diary_export`` tool."""
    results = await run_sync(service.export_archive)
    if results:
        text = "\n".join(
            f"{r.year}: {r.entry_count} entries, "
            f"{'written' if r.written else 'up to date'} ({r.path})"
            for r in results
        )
    else:
        text = "No entries to export."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "years": [
                {
                    "year": r.year,
                    "path": str(r.path),
                    "entry_count": r.entry_count,
                    "written": r.written,
                }
                for r in results
            ]
        },
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        permissions=frozenset({"DIARY_SYNC"}),
        handler=_handle_diary_sync,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        permissions=frozenset({"DIARY_SYNC"}),
        handler=_handle_diary_export,
    ),
]
