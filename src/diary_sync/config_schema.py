"""Unified configuration schema for diary_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the diary store and remote, and for logging.  Includes an
adapter producing the flat ``Config`` dataclass used at runtime.

Usage:
    from diary_sync.config_schema import build_config, to_legacy_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_legacy_config(unified, cli_overrides={"debug": True})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class DiaryConfig(BaseModel):
    """Diary store, remote and sync settings.

    All fields are optional or defaulted so env vars and CLI args can
    supply them at runtime instead.
    """

    database_path: str | None = Field(
        default=None, description="SQLite database file"
    )
    remote_dir: str | None = Field(
        default=None, description="Directory export of the remote diary"
    )
    remote_url: str | None = Field(
        default=None, description="HTTP export of the remote diary"
    )
    remote_username: str | None = Field(
        default=None, description="HTTP basic auth user for remote_url"
    )
    remote_password: str | None = Field(
        default=None, description="HTTP basic auth password"
    )
    insecure: bool = Field(
        default=False, description="Skip TLS certificate verification"
    )
    archive_dir: str | None = Field(
        default=None, description="Directory for the yearly text archive"
    )
    remote_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Per-date remote timeout in seconds",
    )
    max_parallel_syncs: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum dates synced concurrently (1-64)",
    )
    pending_policy: Literal["reject", "supersede"] = Field(
        default="reject",
        description="Re-sync of a date with a pending episode",
    )
    conflict_strategy: Literal["manual", "local-wins", "remote-wins"] = (
        Field(default="manual", description="Auto-resolution strategy")
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Below the LOG_LEVEL env var in precedence.
        file: Optional log file path, below --log-file and LOG_FILE.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    diary: DiaryConfig = Field(default_factory=DiaryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.  Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the runtime ``Config`` dataclass,
    applying CLI overrides on top.

    CLI override keys: database_path, remote_dir, remote_url,
    remote_username, remote_password, insecure, archive_dir, debug.

    Returns:
        ``Config`` instance (NOT validated; run ``validate_config()``).
    """
    # Deferred so the schema module imports without the runtime config
    from .config import DEFAULT_DATABASE_PATH, Config

    overrides = cli_overrides or {}
    diary = unified.diary

    return Config(
        database_path=overrides.get("database_path")
        or diary.database_path
        or DEFAULT_DATABASE_PATH,
        remote_dir=overrides.get("remote_dir") or diary.remote_dir,
        remote_url=overrides.get("remote_url") or diary.remote_url,
        remote_username=overrides.get("remote_username")
        or diary.remote_username,
        remote_password=overrides.get("remote_password")
        or diary.remote_password,
        insecure=overrides.get("insecure", False) or diary.insecure,
        archive_dir=overrides.get("archive_dir") or diary.archive_dir,
        remote_timeout=diary.remote_timeout,
        max_parallel_syncs=diary.max_parallel_syncs,
        pending_policy=diary.pending_policy,
        conflict_strategy=diary.conflict_strategy,
        debug=overrides.get("debug", False) or diary.debug,
    )
