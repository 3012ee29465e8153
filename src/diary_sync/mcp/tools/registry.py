"""Tool registry with permission filtering.

Operators can expose a subset of the diary tools to an agent, for example
read-only access, by listing the permissions it holds in a text file:

- ``DIARY_VIEW``: read entries and conflict episodes
- ``DIARY_WRITE``: overwrite entries directly
- ``DIARY_SYNC``: run syncs against the remote
- ``CONFLICT_RESOLVE``: toggle, discard, commit and resolve episodes

A tool is exposed when the agent holds every permission it requires.
Tools requiring none (``diary_status``) are always exposed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types

from ...errors import DiaryError
from .errors import build_error_response, translate_diary_error

if TYPE_CHECKING:
    from ...service import DiaryService

logger = logging.getLogger(__name__)

KNOWN_PERMISSIONS = frozenset(
    {"DIARY_VIEW", "DIARY_WRITE", "DIARY_SYNC", "CONFLICT_RESOLVE"}
)

Handler = Callable[["DiaryService", dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool: its definition, required permissions and handler."""

    tool: types.Tool
    permissions: frozenset[str]
    handler: Handler

    def allowed_for(self, granted: frozenset[str] | None) -> bool:
        """Whether an agent holding *granted* may use this tool.

        ``None`` means no permission file was given: everything is allowed.
        """
        return granted is None or self.permissions <= granted


class ToolRegistry:
    """The tools an agent may see and call.

    Args:
        specs: Every tool the server implements.
        allowed_permissions: Permissions granted to the agent, or None for
            all tools.

    Raises:
        ValueError: If two specs share a tool name.
    """

    def __init__(
        self,
        specs: Iterable[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            name = spec.tool.name
            if name in self._specs:
                raise ValueError(f"Duplicate tool name: {name}")
            if spec.allowed_for(allowed_permissions):
                self._specs[name] = spec
            else:
                logger.debug("Tool %s hidden by permissions", name)

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._specs.values())

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        service: DiaryService,
    ) -> types.CallToolResult:
        """Run the handler for *name*.

        Every error the handler raises comes back as an ``isError`` result
        carrying a corrective action for the agent.

        Raises:
            ValueError: If *name* is unknown or hidden by permissions.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await spec.handler(service, arguments or {})
        except DiaryError as e:
            logger.warning("%s from %s: %s", e.error_type, name, e)
            return translate_diary_error(e, _domain_from_tool_name(name))
        except ValueError as e:
            return build_error_response(
                "invalid_request",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return build_error_response(
                "server_error",
                str(e),
                "Retry later or check the server log.",
            )


_DOMAINS = {"entry": "entry", "conflict": "conflict"}


def _domain_from_tool_name(name: str) -> str:
    """Map a tool name to its error domain: entry, conflict or sync."""
    prefix, _, _ = name.partition("_")
    return _DOMAINS.get(prefix, "sync")


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read granted permissions, one per line.

    Blank lines and ``#`` comments are skipped::

        # sync bot: may sync and look, never resolves
        DIARY_VIEW
        DIARY_SYNC

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: On an unknown permission, or when none is granted.
    """
    path = Path(path)
    granted: set[str] = set()
    for lineno, raw in enumerate(path.read_text().splitlines(), 1):
        token = raw.split("#", 1)[0].strip()
        if not token:
            continue
        if token not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{token}' at line {lineno} in {path}. "
                f"Expected one of {sorted(KNOWN_PERMISSIONS)}."
            )
        granted.add(token)
    if not granted:
        raise ValueError(f"No permissions found in {path}.")
    return frozenset(granted)
