"""Stdio MCP server exposing the diary to AI agents.

Agents read and write entries, sync dates against the remote copy, and
walk conflict episodes hunk by hunk.  The tool set an agent sees can be
narrowed with a permissions file (see ``tools.registry``).

Transport: stdio (JSON-RPC 2.0).  Stdout belongs to the protocol, so logs
go to a file and operator messages to stderr.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
import yaml
from dotenv import load_dotenv
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import load_hierarchical_config
from ..config_schema import LoggingConfig, build_config
from ..core.async_utils import run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from ..service import DiaryService
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec, load_permissions_file

logger = logging.getLogger(__name__)

SERVER_NAME = "diary-sync-mcp"

server = Server(SERVER_NAME)

# Set by main() for the lifetime of the stdio session
_service: DiaryService | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# diary_status: needs no permission
# ---------------------------------------------------------------------------


async def _handle_status(
    service: DiaryService, args: dict
) -> types.CallToolResult:
    """Version, newest stored date and dates with pending episodes."""
    newest = await run_sync(service.list_entries, None, None, 0, 1)
    pending = await run_sync(service.conflict_dates)
    latest = newest[0].isoformat() if newest else None

    text = "\n".join(
        [
            f"Diary sync MCP server {__version__}",
            f"  Latest entry: {latest or 'none'}",
            f"  Dates with pending conflicts: {len(pending)}",
            *(f"    {d.isoformat()}" for d in pending),
        ]
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "version": __version__,
            "latest_entry": latest,
            "conflict_dates": [d.isoformat() for d in pending],
        },
    )


STATUS_SPEC = ToolSpec(
    tool=types.Tool(
        name="diary_status",
        description="Report the server version, the latest stored entry date, and the dates with pending conflict episodes.",
        annotations=types.ToolAnnotations(readOnlyHint=True),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    permissions=frozenset(),
    handler=_handle_status,
)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


def get_service() -> DiaryService:
    """Return the session's DiaryService.

    Raises:
        RuntimeError: Outside a running session.
    """
    if _service is None:
        raise RuntimeError("DiaryService not initialized; server not started.")
    return _service


def set_service(service: DiaryService | None) -> None:
    global _service
    _service = service


def get_registry() -> ToolRegistry:
    """Return the session's ToolRegistry.

    Raises:
        RuntimeError: Outside a running session.
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized; server not started.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# Protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    try:
        return await get_registry().call_tool(name, arguments, get_service())
    except ValueError as e:
        # Name not registered, or hidden by the permissions file
        return build_error_response(
            "unknown_tool", str(e), "Call list_tools for the available tools."
        )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def _load_logging_settings() -> LoggingConfig:
    """Return the ``logging`` section of config.yml, or defaults.

    Runs before logging exists; a broken config file is reported by the
    lifespan manager instead.
    """
    load_dotenv()
    try:
        return build_config(load_hierarchical_config()).logging
    except (ValueError, OSError, yaml.YAMLError):
        return LoggingConfig()


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Register ``diary_status`` plus every diary tool the agent may use."""
    granted = None
    if permissions_file:
        granted = load_permissions_file(permissions_file)
        logger.info(
            "Permissions from %s: %s", permissions_file, ", ".join(sorted(granted))
        )

    specs = [STATUS_SPEC, *ALL_SPECS]
    registry = ToolRegistry(specs, granted)
    logger.info("Exposing %d of %d tools", registry.tool_count(), len(specs))
    return registry


async def main(config_overrides: dict | None = None):
    """Serve one MCP session over stdio.

    Args:
        config_overrides: CLI values (database_path, remote_dir,
            remote_url, debug, log_file, permissions_file).
    """
    overrides = config_overrides or {}
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
        settings=_load_logging_settings(),
    )

    permissions_file = overrides.get("permissions_file")
    registry = build_registry(permissions_file)
    if permissions_file:
        print(
            f"Permissions file {permissions_file}: "
            f"{registry.tool_count()} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # Set here, not in the lifespan, so `python -m diary_sync.mcp.server`
    # updates this module rather than a second import of it
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_service(ctx["service"])
        options = InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )
        try:
            async with mcp.server.stdio.stdio_server() as (reader, writer):
                await server.run(reader, writer, options)
        finally:
            set_service(None)
            set_registry(None)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

_EPILOG = """
Examples:
  # Settings from .env or .diary_sync/config.yml
  diary-sync-mcp

  # Sync against a directory export
  diary-sync-mcp --remote-dir ~/Dropbox/Diary

  # Sync against a web export, with a custom database
  diary-sync-mcp --remote-url https://example.com/diary --database ~/diary.db

  # Read-only agent
  diary-sync-mcp --permissions-file /etc/diary-sync/read-only.permissions

The MCP protocol runs over stdin/stdout; status messages go to stderr.
"""

# argparse dest -> config override key
_OVERRIDE_KEYS = {
    "database": "database_path",
    "remote_dir": "remote_dir",
    "remote_url": "remote_url",
    "insecure": "insecure",
    "archive_dir": "archive_dir",
    "debug": "debug",
    "log_file": "log_file",
    "permissions_file": "permissions_file",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="Diary Sync MCP Server: sync a diary with its remote copy and resolve conflicts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument(
        "--database",
        help="SQLite database path (overrides DIARY_DATABASE_PATH and config files)",
    )
    parser.add_argument(
        "--remote-dir",
        help="Remote export directory (overrides DIARY_REMOTE_DIR and config files)",
    )
    parser.add_argument(
        "--remote-url",
        help="Remote export URL (overrides DIARY_REMOTE_URL and config files)",
    )
    parser.add_argument(
        "--archive-dir",
        help="Directory for the yearly diary_<year>.txt archive (overrides DIARY_ARCHIVE_DIR)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification for --remote-url (development only)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: LOG_FILE, logging.file in config.yml, "
        f"or {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="File of permissions granted to the agent, one per line "
        "(DIARY_VIEW, DIARY_WRITE, DIARY_SYNC, CONFLICT_RESOLVE). "
        "Without it every tool is available.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Keep only the options given on the command line."""
    values = vars(args)
    return {
        key: values[dest]
        for dest, key in _OVERRIDE_KEYS.items()
        if values.get(dest)
    }


def run() -> None:
    """Console entry point."""
    args = build_parser().parse_args()
    try:
        asyncio.run(main(config_overrides=overrides_from_args(args) or None))
    except RuntimeError:
        # The lifespan manager has already explained the failure on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
