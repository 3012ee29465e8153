"""Remote source adapters."""

from .base import RemoteSource, parse_date_stem
from .directory import DirectoryRemoteSource
from .http import HttpRemoteSource

__all__ = [
    "DirectoryRemoteSource",
    "HttpRemoteSource",
    "RemoteSource",
    "parse_date_stem",
]
