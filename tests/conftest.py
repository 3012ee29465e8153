"""Shared pytest fixtures for diary-sync tests."""

from __future__ import annotations

from datetime import date

import pytest

from diary_sync.errors import UpstreamUnavailableError
from diary_sync.service import DiaryService
from diary_sync.storage import (
    SqliteCacheStore,
    SqliteConflictStore,
    SqliteDatabase,
    SqliteEntryStore,
)


class FakeRemoteSource:
    """In-memory RemoteSource replacement for testing.

    ``texts`` maps dates to remote text; dates listed in ``failing`` raise
    ``UpstreamUnavailableError`` as an unreachable export would.
    """

    def __init__(
        self,
        texts: dict[date, str] | None = None,
        failing: set[date] | None = None,
    ) -> None:
        self.texts: dict[date, str] = dict(texts or {})
        self.failing: set[date] = set(failing or ())
        self.fetch_calls: list[date] = []

    def fetch(self, diary_date: date) -> str | None:
        self.fetch_calls.append(diary_date)
        if diary_date in self.failing:
            raise UpstreamUnavailableError(
                f"Remote unavailable for {diary_date}"
            )
        return self.texts.get(diary_date)

    def list_dates(self) -> list[date]:
        return sorted(set(self.texts) | self.failing)


@pytest.fixture
def db(tmp_path):
    """A fresh SQLite database in the test's temp directory."""
    return SqliteDatabase(tmp_path / "diary.db")


@pytest.fixture
def entries(db):
    return SqliteEntryStore(db)


@pytest.fixture
def conflicts(db):
    return SqliteConflictStore(db)


@pytest.fixture
def cache(db):
    return SqliteCacheStore(db)


@pytest.fixture
def remote():
    return FakeRemoteSource()


@pytest.fixture
def make_service(entries, conflicts, remote, cache):
    """Factory fixture building a DiaryService over the shared stores."""

    def _make(**kwargs) -> DiaryService:
        return DiaryService(entries, conflicts, remote, cache, **kwargs)

    return _make


@pytest.fixture
def service(make_service):
    """DiaryService with default policies (reject, manual)."""
    return make_service()
