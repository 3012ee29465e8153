"""Turn diary errors into ``isError`` tool results.

Every error result names what went wrong and the next call an agent can
make to recover, so a failed tool call rarely needs a human.
"""

import mcp.types as types

from ...errors import DiaryError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Wrap an error as ``Error (<type>): <message>`` plus an ``Action:`` line.

    *error_type* is one of the ``DiaryError.error_type`` slugs, or
    ``unknown_tool`` for calls the registry rejects.
    """
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Error ({error_type}): {message}\n\nAction: {corrective_action}",
            )
        ],
        isError=True,
    )


# Recovery hints that depend on which tool family failed
_BY_DOMAIN: dict[tuple[str, str], str] = {
    ("entry", "not_found"): "Use entry_list or entry_search to find stored dates.",
    ("entry", "conflict"): (
        "Resolve the pending episode with conflict_list and conflict_commit first."
    ),
    ("sync", "not_found"): "Check the date and retry.",
    ("sync", "conflict"): (
        "Resolve the pending episode (conflict_show, then conflict_commit "
        "or conflict_discard) before syncing this date again."
    ),
    ("conflict", "not_found"): (
        "Use conflict_list to see pending episodes; committed or "
        "discarded episodes no longer exist."
    ),
    ("conflict", "conflict"): (
        "Use conflict_list to see the current episode for this date."
    ),
}

_FALLBACK_HINTS: dict[str, str] = {
    "invalid_request": (
        "Check parameter values (dates are YYYY-MM-DD, direction is 'add' "
        "or 'rem') and retry."
    ),
    "upstream_unavailable": (
        "The remote diary could not be read. Check the remote directory or "
        "URL and retry diary_sync later."
    ),
    "storage_failure": (
        "The local database failed. Check the database path and disk space, "
        "then retry."
    ),
    "server_error": "Retry later or check the server log.",
}


def translate_diary_error(
    error: DiaryError, domain: str
) -> types.CallToolResult:
    """Error result for *error* raised by a tool in *domain*.

    *domain* is ``"entry"``, ``"sync"`` or ``"conflict"``.
    """
    kind = error.error_type
    hint = _BY_DOMAIN.get((domain, kind)) or _FALLBACK_HINTS.get(
        kind, _FALLBACK_HINTS["server_error"]
    )
    return build_error_response(kind, str(error), hint)
