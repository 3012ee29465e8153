import json
import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config_schema import LoggingConfig

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_PREFIX = "[%(asctime)s] [%(levelname)s] "
DEFAULT_LOG_FILE = "/tmp/diary-sync-mcp.log"

_NOISY_LIBRARIES = ("urllib3", "requests", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, plus exc on errors."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(style: str, with_logger_name: bool) -> logging.Formatter:
    if style == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = "%(name)s " if with_logger_name else ""
    return logging.Formatter(f"{_PREFIX}{name}%(message)s", datefmt=_DATEFMT)


def _resolve_level(mode: str, debug: bool, configured: str | None) -> int:
    if debug:
        return logging.DEBUG
    fallback = "WARNING" if mode == "mcp" else "INFO"
    name = (os.getenv("LOG_LEVEL") or configured or fallback).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    settings: "LoggingConfig | None" = None,
) -> None:
    """Install the root handlers for the CLI or the MCP server.

    ``mode="mcp"`` writes to a file only, since stdout carries the protocol.
    ``mode="cli"`` writes to stderr and, when a file is named, to it too.

    Level: ``debug`` wins, then ``LOG_LEVEL``, then ``settings.level``;
    otherwise WARNING for MCP and INFO for the CLI.

    MCP log file: *log_file*, then ``LOG_FILE``, then ``settings.file``,
    then ``DEFAULT_LOG_FILE``.

    Args:
        debug_format: ``"text"`` or ``"json"`` (CLI handlers only).
        settings: The ``logging`` section of config.yml, if any.
    """
    configured_level = settings.level if settings else None
    configured_file = settings.file if settings else None
    level = _resolve_level(mode, debug, configured_level)

    if mode == "mcp":
        logging.basicConfig(
            level=level,
            format=f"{_PREFIX}%(message)s",
            datefmt=_DATEFMT,
            filename=(
                log_file
                or os.getenv("LOG_FILE")
                or configured_file
                or DEFAULT_LOG_FILE
            ),
            filemode="a",
        )
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(debug_format, with_logger_name=False))
        handlers: list[logging.Handler] = [console]

        path = log_file or configured_file
        if path:
            to_file = logging.FileHandler(path, mode="a")
            to_file.setFormatter(_formatter(debug_format, with_logger_name=True))
            handlers.append(to_file)

        logging.basicConfig(level=level, handlers=handlers)

    if level != logging.DEBUG:
        for name in _NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)
