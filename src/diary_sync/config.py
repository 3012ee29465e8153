"""Runtime configuration for the diary sync service.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    DIARY_DATABASE_PATH: SQLite database file (optional, default: ~/.local/share/diary_sync/diary.db)
    DIARY_REMOTE_DIR: Directory export of the remote diary
    DIARY_REMOTE_URL: HTTP export of the remote diary (one of DIR/URL is required)
    DIARY_REMOTE_USERNAME: HTTP basic auth user for DIARY_REMOTE_URL (optional)
    DIARY_REMOTE_PASSWORD: HTTP basic auth password (required with a username)
    DIARY_INSECURE: Skip TLS certificate verification (optional, default: false)
    DIARY_ARCHIVE_DIR: Directory for the yearly diary_<year>.txt archive (optional)
    DIARY_REMOTE_TIMEOUT: Per-date remote timeout in seconds (optional, default: 30)
    DIARY_MAX_PARALLEL_SYNCS: Max dates synced concurrently (optional, default: 4)
    DIARY_PENDING_POLICY: reject | supersede (optional, default: reject)
    DIARY_CONFLICT_STRATEGY: manual | local-wins | remote-wins (optional, default: manual)
    DIARY_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "~/.local/share/diary_sync/diary.db"
PENDING_POLICIES = ("reject", "supersede")
CONFLICT_STRATEGIES = ("manual", "local-wins", "remote-wins")


@dataclass
class Config:
    database_path: str = DEFAULT_DATABASE_PATH
    remote_dir: str | None = None
    remote_url: str | None = None
    remote_username: str | None = None
    remote_password: str | None = None
    insecure: bool = False
    remote_timeout: float = 30.0
    archive_dir: str | None = None
    max_parallel_syncs: int = 4
    pending_policy: str = "reject"
    conflict_strategy: str = "manual"
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Raises:
        ValueError: If no remote is configured, both are, the URL is
            malformed, credentials are half set, or an enumerated setting
            is unknown.
    """
    if not config.remote_dir and not config.remote_url:
        raise ValueError(
            "No remote configured. Set DIARY_REMOTE_DIR or DIARY_REMOTE_URL."
        )
    if config.remote_dir and config.remote_url:
        raise ValueError(
            "Both DIARY_REMOTE_DIR and DIARY_REMOTE_URL are set; choose one."
        )

    if config.remote_url:
        config.remote_url = config.remote_url.strip()
        if not config.remote_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': must start with http:// or https://"
            )
        if not urlparse(config.remote_url).hostname:
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': URL must include a hostname"
            )
        config.remote_url = config.remote_url.removesuffix("/")

    if bool(config.remote_username) != bool(config.remote_password):
        raise ValueError(
            "Remote credentials are incomplete. Set both DIARY_REMOTE_USERNAME "
            "and DIARY_REMOTE_PASSWORD, or neither."
        )
    if config.remote_username and not config.remote_url:
        logger.warning("Remote credentials are ignored without DIARY_REMOTE_URL")
    if config.insecure:
        logger.warning(
            "WARNING: TLS verification disabled (insecure=True). Use only for development."
        )

    if config.pending_policy not in PENDING_POLICIES:
        raise ValueError(
            f"Invalid pending policy '{config.pending_policy}': must be one of {list(PENDING_POLICIES)}"
        )
    if config.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Invalid conflict strategy '{config.conflict_strategy}': must be one of {list(CONFLICT_STRATEGIES)}"
        )
    if config.conflict_strategy != "manual":
        logger.warning(
            "Conflict strategy '%s' resolves episodes without review",
            config.conflict_strategy,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, cast, low, high):
    """Return a bounded number from env var, or None if unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    database_path: str | None = None,
    remote_dir: str | None = None,
    remote_url: str | None = None,
    remote_username: str | None = None,
    remote_password: str | None = None,
    insecure: bool = False,
    archive_dir: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        database_path: Override SQLite database path.
        remote_dir: Override remote export directory.
        remote_url: Override remote export URL.
        remote_username: Override HTTP basic auth user.
        remote_password: Override HTTP basic auth password.
        insecure: Skip TLS verification (CLI flag).
        archive_dir: Override yearly archive directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML ``diary`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed or no remote is configured.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_db = (
        database_path
        or os.getenv("DIARY_DATABASE_PATH")
        or fb.get("database_path")
        or DEFAULT_DATABASE_PATH
    )
    final_remote_dir = (
        remote_dir or os.getenv("DIARY_REMOTE_DIR") or fb.get("remote_dir")
    )
    final_remote_url = (
        remote_url or os.getenv("DIARY_REMOTE_URL") or fb.get("remote_url")
    )
    final_username = (
        remote_username
        or os.getenv("DIARY_REMOTE_USERNAME")
        or fb.get("remote_username")
    )
    final_password = (
        remote_password
        or os.getenv("DIARY_REMOTE_PASSWORD")
        or fb.get("remote_password")
    )
    final_archive = (
        archive_dir or os.getenv("DIARY_ARCHIVE_DIR") or fb.get("archive_dir")
    )
    final_policy = (
        os.getenv("DIARY_PENDING_POLICY")
        or fb.get("pending_policy")
        or "reject"
    )
    final_strategy = (
        os.getenv("DIARY_CONFLICT_STRATEGY")
        or fb.get("conflict_strategy")
        or "manual"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("DIARY_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("DIARY_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    # --- Numeric fields: env > YAML > default ---

    final_timeout = _get_number_env("DIARY_REMOTE_TIMEOUT", float, 0.1, 600)
    if final_timeout is None:
        final_timeout = float(fb.get("remote_timeout", 30.0))

    final_parallel = _get_number_env("DIARY_MAX_PARALLEL_SYNCS", int, 1, 64)
    if final_parallel is None:
        final_parallel = int(fb.get("max_parallel_syncs", 4))

    config = Config(
        database_path=final_db.strip(),
        remote_dir=final_remote_dir.strip() if final_remote_dir else None,
        remote_url=final_remote_url.strip() if final_remote_url else None,
        remote_username=final_username.strip() if final_username else None,
        remote_password=final_password.strip() if final_password else None,
        insecure=final_insecure,
        archive_dir=final_archive.strip() if final_archive else None,
        remote_timeout=final_timeout,
        max_parallel_syncs=final_parallel,
        pending_policy=final_policy.strip().lower(),
        conflict_strategy=final_strategy.strip().lower(),
        debug=final_debug,
    )

    validate_config(config)

    return config
