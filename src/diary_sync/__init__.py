"""Diary synchronization and conflict-resolution engine."""

__version__ = "0.3.0"
