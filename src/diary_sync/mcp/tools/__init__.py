"""MCP tool handlers for diary operations.

This package contains MCP tool implementations that wrap DiaryService
with async handlers and structured error responses.
"""

from .conflicts import CONFLICT_SPECS, CONFLICT_TOOLS
from .entries import ENTRY_SPECS, ENTRY_TOOLS
from .errors import build_error_response, translate_diary_error
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = ENTRY_SPECS + SYNC_SPECS + CONFLICT_SPECS

__all__ = [
    "build_error_response",
    "translate_diary_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # ToolSpec lists
    "ALL_SPECS",
    "ENTRY_SPECS",
    "SYNC_SPECS",
    "CONFLICT_SPECS",
    # Tool lists
    "ENTRY_TOOLS",
    "SYNC_TOOLS",
    "CONFLICT_TOOLS",
]
