"""Core helpers shared by the service and the MCP server."""

from .async_utils import run_sync, run_sync_limited

__all__ = ["run_sync", "run_sync_limited"]
