"""Startup and shutdown of the MCP server's diary service."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import yaml
from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config
from ..core.async_utils import init_semaphore, run_sync
from ..errors import DiaryError
from ..service import DiaryService

logger = logging.getLogger(__name__)

_REMOTE_HINT = "Ensure DIARY_REMOTE_DIR or DIARY_REMOTE_URL is set."


def _stderr_print(msg: str) -> None:
    """Operator feedback; stdout is reserved for the protocol."""
    print(msg, file=sys.stderr, flush=True)


def _resolve_config(overrides: dict[str, Any]) -> tuple[Config, list[str]]:
    """Merge CLI, environment and config.yml into a Config.

    Returns the config and a description of the sources that fed it.
    """
    sources = []
    yaml_fallbacks = None
    files = discover_config_files()
    if files:
        diary = build_config(load_hierarchical_config(files)).diary
        yaml_fallbacks = diary.model_dump(exclude_none=True)
        sources.append(f"config file: {files[0]}")
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")

    config = load_config(
        database_path=overrides.get("database_path"),
        remote_dir=overrides.get("remote_dir"),
        remote_url=overrides.get("remote_url"),
        insecure=overrides.get("insecure", False),
        archive_dir=overrides.get("archive_dir"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )
    return config, sources


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Open the diary for one server session.

    Precedence is CLI > environment (including .env) > config.yml >
    defaults.  The database is opened up front; the remote is only read
    when a sync runs, so an unreachable remote does not stop startup.

    Yields:
        ``{"service": DiaryService, "config": Config}``

    Raises:
        RuntimeError: Bad configuration, or a database that cannot be
            opened.  The reason has already been printed to stderr.
    """
    logger.info("Starting diary sync MCP server")
    _stderr_print("Diary Sync MCP Server starting...")

    # Before the YAML is read, so ${VAR} can refer to .env values
    load_dotenv()

    try:
        config, sources = _resolve_config(config_overrides or {})
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {_REMOTE_HINT}")
        raise RuntimeError(f"Configuration error: {e}. {_REMOTE_HINT}") from e

    described = ", ".join(sources)
    logger.info("Configuration sources: %s", described)
    _stderr_print(f"  Configuration loaded from: {described}")
    _stderr_print(f"  Remote: {config.remote_url or config.remote_dir}")

    try:
        service = await run_sync(DiaryService.from_config, config)
    except (DiaryError, OSError) as e:
        logger.error("Cannot open diary database %s: %s", config.database_path, e)
        _stderr_print(f"ERROR: Diary database could not be opened: {e}")
        raise RuntimeError(
            f"Diary database could not be opened: {e}. Check DIARY_DATABASE_PATH."
        ) from e

    init_semaphore(config.max_parallel_syncs)
    _stderr_print(f"  Database: {config.database_path}")
    _stderr_print(f"  Parallel syncs: {config.max_parallel_syncs}")
    _stderr_print("Ready; waiting for an MCP client.")

    yield {"service": service, "config": config}

    logger.info("Diary sync MCP server stopped")
    _stderr_print("Diary Sync MCP Server shutting down.")
