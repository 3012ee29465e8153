"""Persistence layer: entry, conflict and cache stores."""

from .base import CacheStore, ConflictStore, EntryStore
from .sqlite import (
    SqliteCacheStore,
    SqliteConflictStore,
    SqliteDatabase,
    SqliteEntryStore,
    datetime_key,
)

__all__ = [
    "CacheStore",
    "ConflictStore",
    "EntryStore",
    "SqliteCacheStore",
    "SqliteConflictStore",
    "SqliteDatabase",
    "SqliteEntryStore",
    "datetime_key",
]
