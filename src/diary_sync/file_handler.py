"""Reading diary export files whose encoding is not known up front, and
writing archive files.

Exports come from several tools over the years; most are UTF-8, older ones
are in a legacy single-byte code page.  UTF-8 is tried strictly first and
charset-normalizer guesses the rest.  Files this package writes are always
UTF-8.
"""

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

UTF8 = "utf-8"


def validate_directory(path_str: str | Path) -> Path:
    """Return *path_str* resolved, provided it names an existing directory.

    Raises:
        ValueError: If nothing exists there, or it is not a directory.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Directory not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Path is not a directory: {path_str}")
    return resolved


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode an export file's bytes.

    Returns:
        ``(text, encoding)``; empty input and undetectable bytes are
        reported as UTF-8, the latter with replacement characters.
    """
    if not raw:
        return "", UTF8
    try:
        return raw.decode(UTF8), UTF8
    except UnicodeDecodeError:
        logger.debug("Export bytes are not UTF-8, detecting encoding")

    guess = from_bytes(raw).best()
    if guess is None:
        logger.warning("Could not detect export encoding; decoding as UTF-8")
        return raw.decode(UTF8, errors="replace"), UTF8
    return str(guess), guess.encoding


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read *path* and decode it with ``decode_bytes``."""
    return decode_bytes(Path(path).read_bytes())


def write_text_atomic(path: Path, text: str) -> None:
    """Write *text* to *path* as UTF-8, replacing it in one step.

    The text goes to a temporary file in the same directory first, so a
    reader sees either the old file or the complete new one.
    """
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=UTF8, newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
