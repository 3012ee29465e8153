"""
YAML config files for diary_sync: discovery, ``!include`` and ``${VAR}``.

Three locations are searched, highest precedence first:

1. the file named by ``DIARY_SYNC_CONFIG``
2. ``.diary_sync/config.yml`` under the working directory
3. ``~/.config/diary_sync/config.yml``

Files are layered section by section: a top-level key (``diary``,
``logging``) in a higher-precedence file replaces the whole section from a
lower one.  String values may reference the environment as ``${VAR}`` or
``${VAR:-fallback}``; substitution happens after layering.

Usage:
    from diary_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DIARY_SYNC_CONFIG"
PROJECT_CONFIG = Path(".diary_sync") / "config.yml"
USER_CONFIG = Path(".config") / "diary_sync" / "config.yml"

_VAR_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# ${VAR} substitution
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Substitute ``${VAR}`` / ``${VAR:-fallback}`` references in *value*.

    An unset or empty variable yields its fallback, or ``""`` without one.
    An unterminated ``${`` is kept as written.
    """
    return _VAR_REF.sub(
        lambda m: os.environ.get(m["name"]) or (m["fallback"] or ""),
        value,
    )


def _interpolate_recursive(node: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string inside *node*."""
    if isinstance(node, dict):
        return {key: _interpolate_recursive(item) for key, item in node.items()}
    if isinstance(node, list):
        return list(map(_interpolate_recursive, node))
    if isinstance(node, str):
        return interpolate_env_vars(node)
    return node


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class _IncludeLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    *chain* lists the files currently being loaded, outermost first, so a
    file that includes itself (directly or not) is reported instead of
    recursing forever.  ``yaml.SafeLoader`` itself is left untouched.
    """

    def __init__(self, stream, chain: Sequence[Path]) -> None:
        super().__init__(stream)
        self.chain = tuple(chain)

    def include(self, node: yaml.ScalarNode) -> Any:
        target = Path(self.construct_scalar(node)).expanduser()
        current = self.chain[-1]
        if not target.is_absolute():
            target = current.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {current})"
            )
        return read_yaml(target, self.chain)


_IncludeLoader.add_constructor("!include", _IncludeLoader.include)


def read_yaml(path: Path, chain: Sequence[Path] = ()) -> Any:
    """Parse one YAML file, following ``!include`` directives.

    Raises:
        ValueError: On a circular include.
        FileNotFoundError: If an included file is missing.
        yaml.YAMLError: If a file is not valid YAML.
    """
    path = Path(path).resolve()
    with path.open(encoding="utf-8") as stream:
        loader = _IncludeLoader(stream, (*chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and layering
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first."""
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.append(Path.cwd() / PROJECT_CONFIG)
    candidates.append(Path.home() / USER_CONFIG)
    return [path for path in candidates if path.exists()]


def load_hierarchical_config(
    paths: Iterable[Path] | None = None,
) -> dict[str, Any]:
    """Layer the config files into one dict.

    Args:
        paths: Files in precedence order, highest first.  Defaults to
            ``discover_config_files()``.

    Returns:
        The layered, interpolated sections; ``{}`` when there is no file.
    """
    ordered = list(paths) if paths is not None else discover_config_files()
    if not ordered:
        logger.debug("No config files found, using built-in defaults")
        return {}

    sections: dict[str, Any] = {}
    for path in reversed(ordered):
        logger.debug("Reading config file %s", path)
        try:
            data = read_yaml(path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Cannot read config file %s: %s", path, exc)
            raise
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        sections.update(data)

    return _interpolate_recursive(sections)
