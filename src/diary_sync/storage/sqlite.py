"""SQLite backend for the entry, conflict and cache stores.

The stores share one ``SqliteDatabase`` so that committing an episode
(write the merged entry, then clear the episode) or merging cached notes
happens in a single transaction.

Key design choices:

* **Connection per operation** -- every call opens its own connection
  (WAL journal, busy timeout) and closes it on exit, so stores are safe to
  use from worker threads.
* **Explicit transactions** -- connections run in autocommit mode and
  ``transaction()`` issues ``BEGIN IMMEDIATE`` so a read-check-write
  sequence (e.g. the pending-episode check) holds the write lock.
* **Text keys** -- dates are stored as ISO ``YYYY-MM-DD`` and sync
  timestamps as UTC ISO 8601 strings, both of which sort chronologically.
* ``sqlite3.Error`` is re-raised as ``StorageFailureError``.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from datetime import date, datetime, timezone
from pathlib import Path

from diary_sync.errors import ConflictError, NotFoundError, StorageFailureError
from diary_sync.sync.differ import DiffOp
from diary_sync.sync.models import (
    CacheEntry,
    ConflictHunk,
    DiaryEntry,
    DiffType,
    Episode,
    EpisodeSummary,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS diary_entries (
    diary_date TEXT PRIMARY KEY,
    diary_text TEXT NOT NULL,
    last_modified TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS conflict_episodes (
    diary_date TEXT NOT NULL,
    sync_datetime TEXT NOT NULL,
    local_text TEXT NOT NULL,
    PRIMARY KEY (diary_date, sync_datetime)
);

CREATE TABLE IF NOT EXISTS diary_conflict (
    id TEXT PRIMARY KEY,
    sync_datetime TEXT NOT NULL,
    diary_date TEXT NOT NULL,
    diff_type TEXT NOT NULL CHECK (diff_type IN ('add', 'rem')),
    diff_text TEXT NOT NULL,
    position INTEGER NOT NULL,
    line_number INTEGER NOT NULL,
    included INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_diary_conflict_episode
    ON diary_conflict (diary_date, sync_datetime, position);

CREATE TABLE IF NOT EXISTS diary_cache (
    diary_datetime TEXT PRIMARY KEY,
    diary_text TEXT NOT NULL
);
"""


def datetime_key(value: datetime) -> str:
    """Return the canonical storage key for a sync timestamp.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqliteDatabase:
    """Owns the database file and hands out connections.

    Args:
        db_path: Path to the SQLite file; ``:memory:`` is not supported
            because every operation opens a fresh connection.
        busy_timeout_ms: How long a writer waits for the lock.
    """

    def __init__(self, db_path: Path, busy_timeout_ms: int = 5000) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StorageFailureError(
                f"Cannot initialise database {self.db_path}: {exc}"
            ) from exc
        finally:
            conn.close()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        return conn

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a connection inside ``BEGIN IMMEDIATE``.

        Commits on success, rolls back on any exception, always closes.
        ``sqlite3.Error`` surfaces as ``StorageFailureError``; domain errors
        raised inside the block propagate unchanged.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StorageFailureError(
                f"Cannot open database {self.db_path}: {exc}"
            ) from exc
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            _rollback(conn)
            raise StorageFailureError(str(exc)) from exc
        except BaseException:
            _rollback(conn)
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for read-only queries."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StorageFailureError(
                f"Cannot open database {self.db_path}: {exc}"
            ) from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StorageFailureError(str(exc)) from exc
        finally:
            conn.close()


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.warning("Rollback failed", exc_info=True)


def _upsert_entry(
    conn: sqlite3.Connection, diary_date: date, diary_text: str
) -> DiaryEntry:
    now = _utcnow()
    conn.execute(
        "INSERT INTO diary_entries (diary_date, diary_text, last_modified) "
        "VALUES (?, ?, ?) "
        "ON CONFLICT(diary_date) DO UPDATE SET "
        "diary_text = excluded.diary_text, "
        "last_modified = excluded.last_modified",
        (diary_date.isoformat(), diary_text, now.isoformat()),
    )
    return DiaryEntry(
        diary_date=diary_date, diary_text=diary_text, last_modified=now
    )


def _row_to_entry(row: sqlite3.Row) -> DiaryEntry:
    return DiaryEntry(
        diary_date=date.fromisoformat(row["diary_date"]),
        diary_text=row["diary_text"],
        last_modified=datetime.fromisoformat(row["last_modified"]),
    )


def _row_to_hunk(row: sqlite3.Row) -> ConflictHunk:
    return ConflictHunk(
        id=row["id"],
        sync_datetime=datetime.fromisoformat(row["sync_datetime"]),
        diary_date=date.fromisoformat(row["diary_date"]),
        diff_type=DiffType(row["diff_type"]),
        diff_text=row["diff_text"],
        position=row["position"],
        line_number=row["line_number"],
        included=bool(row["included"]),
    )


# ---------------------------------------------------------------------------
# Entry store
# ---------------------------------------------------------------------------


class SqliteEntryStore:
    """``EntryStore`` backed by the ``diary_entries`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def get(self, diary_date: date) -> DiaryEntry | None:
        with self._db.reader() as conn:
            row = conn.execute(
                "SELECT * FROM diary_entries WHERE diary_date = ?",
                (diary_date.isoformat(),),
            ).fetchone()
        return _row_to_entry(row) if row is not None else None

    def put(self, diary_date: date, diary_text: str) -> DiaryEntry:
        with self._db.transaction() as conn:
            entry = _upsert_entry(conn, diary_date, diary_text)
        logger.debug("Stored entry %s", diary_date)
        return entry

    def list_dates(
        self,
        min_date: date | None = None,
        max_date: date | None = None,
        start: int = 0,
        limit: int | None = None,
    ) -> list[date]:
        clauses: list[str] = []
        params: list[object] = []
        if min_date is not None:
            clauses.append("diary_date >= ?")
            params.append(min_date.isoformat())
        if max_date is not None:
            clauses.append("diary_date <= ?")
            params.append(max_date.isoformat())
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        params.extend([-1 if limit is None else limit, start])
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT diary_date FROM diary_entries "
                f"{where}ORDER BY diary_date DESC LIMIT ? OFFSET ?",
                params,
            ).fetchall()
        return [date.fromisoformat(r["diary_date"]) for r in rows]

    def get_many(self, dates: Iterable[date]) -> list[DiaryEntry]:
        keys = sorted({d.isoformat() for d in dates})
        if not keys:
            return []
        placeholders = ", ".join("?" for _ in keys)
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT * FROM diary_entries "
                f"WHERE diary_date IN ({placeholders}) ORDER BY diary_date",
                keys,
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def search_text(self, text: str) -> list[DiaryEntry]:
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT * FROM diary_entries "
                "WHERE instr(diary_text, ?) > 0 ORDER BY diary_date",
                (text,),
            ).fetchall()
        return [_row_to_entry(r) for r in rows]


# ---------------------------------------------------------------------------
# Conflict store
# ---------------------------------------------------------------------------


class SqliteConflictStore:
    """``ConflictStore`` backed by ``conflict_episodes`` and
    ``diary_conflict``."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def create_episode(
        self,
        diary_date: date,
        sync_datetime: datetime,
        local_text: str,
        ops: Iterable[DiffOp],
        supersede: bool = False,
    ) -> Episode:
        date_key = diary_date.isoformat()
        dt_key = datetime_key(sync_datetime)
        hunks = [
            ConflictHunk(
                id=uuid.uuid4().hex,
                sync_datetime=datetime.fromisoformat(dt_key),
                diary_date=diary_date,
                diff_type=op.diff_type,
                diff_text=op.text,
                position=op.position,
                line_number=op.line_number,
            )
            for op in ops
        ]

        with self._db.transaction() as conn:
            stale = [
                r["sync_datetime"]
                for r in conn.execute(
                    "SELECT sync_datetime FROM conflict_episodes "
                    "WHERE diary_date = ?",
                    (date_key,),
                )
            ]
            if stale and not supersede:
                raise ConflictError(
                    f"Conflict pending for {date_key} "
                    f"(episode {stale[0]}); resolve it before re-syncing"
                )
            if stale:
                conn.execute(
                    "DELETE FROM diary_conflict WHERE diary_date = ?",
                    (date_key,),
                )
                conn.execute(
                    "DELETE FROM conflict_episodes WHERE diary_date = ?",
                    (date_key,),
                )
                logger.info(
                    "Superseded %d stale episode(s) for %s",
                    len(stale),
                    date_key,
                )

            conn.execute(
                "INSERT INTO conflict_episodes "
                "(diary_date, sync_datetime, local_text) VALUES (?, ?, ?)",
                (date_key, dt_key, local_text),
            )
            conn.executemany(
                "INSERT INTO diary_conflict (id, sync_datetime, diary_date, "
                "diff_type, diff_text, position, line_number, included) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, 1)",
                [
                    (
                        h.id,
                        dt_key,
                        date_key,
                        h.diff_type.value,
                        h.diff_text,
                        h.position,
                        h.line_number,
                    )
                    for h in hunks
                ],
            )

        return Episode(
            diary_date=diary_date,
            sync_datetime=datetime.fromisoformat(dt_key),
            local_text=local_text,
            hunks=hunks,
        )

    def pending_dates(self) -> list[date]:
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT DISTINCT diary_date FROM conflict_episodes "
                "ORDER BY diary_date"
            ).fetchall()
        return [date.fromisoformat(r["diary_date"]) for r in rows]

    def list_episodes(
        self, diary_date: date | None = None
    ) -> list[EpisodeSummary]:
        where = ""
        params: tuple[str, ...] = ()
        if diary_date is not None:
            where = "WHERE e.diary_date = ? "
            params = (diary_date.isoformat(),)
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT e.diary_date, e.sync_datetime, "
                "COUNT(c.id) AS hunk_count, "
                "COALESCE(SUM(c.included), 0) AS included_count "
                "FROM conflict_episodes e "
                "LEFT JOIN diary_conflict c "
                "ON c.diary_date = e.diary_date "
                "AND c.sync_datetime = e.sync_datetime "
                f"{where}"
                "GROUP BY e.diary_date, e.sync_datetime "
                "ORDER BY e.diary_date, e.sync_datetime",
                params,
            ).fetchall()
        return [
            EpisodeSummary(
                diary_date=date.fromisoformat(r["diary_date"]),
                sync_datetime=datetime.fromisoformat(r["sync_datetime"]),
                hunk_count=r["hunk_count"],
                included_count=r["included_count"],
            )
            for r in rows
        ]

    def get_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> Episode | None:
        key = (diary_date.isoformat(), datetime_key(sync_datetime))
        with self._db.reader() as conn:
            return self._load_episode(conn, *key)

    def _load_episode(
        self, conn: sqlite3.Connection, date_key: str, dt_key: str
    ) -> Episode | None:
        head = conn.execute(
            "SELECT local_text FROM conflict_episodes "
            "WHERE diary_date = ? AND sync_datetime = ?",
            (date_key, dt_key),
        ).fetchone()
        if head is None:
            return None
        rows = conn.execute(
            "SELECT * FROM diary_conflict "
            "WHERE diary_date = ? AND sync_datetime = ? ORDER BY position",
            (date_key, dt_key),
        ).fetchall()
        return Episode(
            diary_date=date.fromisoformat(date_key),
            sync_datetime=datetime.fromisoformat(dt_key),
            local_text=head["local_text"],
            hunks=[_row_to_hunk(r) for r in rows],
        )

    def get_hunk(self, hunk_id: str) -> ConflictHunk | None:
        with self._db.reader() as conn:
            row = conn.execute(
                "SELECT * FROM diary_conflict WHERE id = ?", (hunk_id,)
            ).fetchone()
        return _row_to_hunk(row) if row is not None else None

    def set_included(self, hunk_id: str, included: bool) -> ConflictHunk:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE diary_conflict SET included = ? WHERE id = ?",
                (1 if included else 0, hunk_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Conflict hunk {hunk_id} not found")
            row = conn.execute(
                "SELECT * FROM diary_conflict WHERE id = ?", (hunk_id,)
            ).fetchone()
        return _row_to_hunk(row)

    def delete_hunk(self, hunk_id: str) -> bool:
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM diary_conflict WHERE id = ?", (hunk_id,)
            )
        return cursor.rowcount > 0

    def delete_episode(
        self, diary_date: date, sync_datetime: datetime
    ) -> int:
        key = (diary_date.isoformat(), datetime_key(sync_datetime))
        with self._db.transaction() as conn:
            return self._delete_episode(conn, *key)

    def _delete_episode(
        self, conn: sqlite3.Connection, date_key: str, dt_key: str
    ) -> int:
        head = conn.execute(
            "DELETE FROM conflict_episodes "
            "WHERE diary_date = ? AND sync_datetime = ?",
            (date_key, dt_key),
        )
        if head.rowcount == 0:
            return -1
        hunks = conn.execute(
            "DELETE FROM diary_conflict "
            "WHERE diary_date = ? AND sync_datetime = ?",
            (date_key, dt_key),
        )
        return hunks.rowcount

    def commit_episode(
        self, diary_date: date, sync_datetime: datetime, merged_text: str
    ) -> DiaryEntry:
        key = (diary_date.isoformat(), datetime_key(sync_datetime))
        with self._db.transaction() as conn:
            if self._delete_episode(conn, *key) < 0:
                raise NotFoundError(
                    f"Conflict episode {key[0]} @ {key[1]} not found"
                )
            return _upsert_entry(conn, diary_date, merged_text)


# ---------------------------------------------------------------------------
# Cache store
# ---------------------------------------------------------------------------


def _row_to_cached(row: sqlite3.Row) -> CacheEntry:
    return CacheEntry(
        diary_datetime=datetime.fromisoformat(row["diary_datetime"]),
        diary_text=row["diary_text"],
    )


class SqliteCacheStore:
    """``CacheStore`` backed by the ``diary_cache`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def add(self, diary_text: str) -> CacheEntry:
        cached = CacheEntry(diary_datetime=_utcnow(), diary_text=diary_text)
        with self._db.transaction() as conn:
            conn.execute(
                "INSERT INTO diary_cache (diary_datetime, diary_text) "
                "VALUES (?, ?)",
                (datetime_key(cached.diary_datetime), diary_text),
            )
        logger.debug("Cached note at %s", cached.diary_datetime)
        return cached

    def list_all(self) -> list[CacheEntry]:
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT * FROM diary_cache ORDER BY diary_datetime"
            ).fetchall()
        return [_row_to_cached(r) for r in rows]

    def search_text(self, text: str) -> list[CacheEntry]:
        with self._db.reader() as conn:
            rows = conn.execute(
                "SELECT * FROM diary_cache "
                "WHERE instr(diary_text, ?) > 0 ORDER BY diary_datetime",
                (text,),
            ).fetchall()
        return [_row_to_cached(r) for r in rows]

    def merge_into_entry(
        self,
        diary_date: date,
        block: str,
        cached_at: Iterable[datetime],
    ) -> DiaryEntry:
        date_key = diary_date.isoformat()
        keys = [(datetime_key(dt),) for dt in cached_at]
        with self._db.transaction() as conn:
            pending = conn.execute(
                "SELECT sync_datetime FROM conflict_episodes "
                "WHERE diary_date = ? LIMIT 1",
                (date_key,),
            ).fetchone()
            if pending is not None:
                raise ConflictError(
                    f"Conflict pending for {date_key} "
                    f"(episode {pending['sync_datetime']}); cached notes kept"
                )
            row = conn.execute(
                "SELECT diary_text FROM diary_entries WHERE diary_date = ?",
                (date_key,),
            ).fetchone()
            text = block if row is None else f"{row['diary_text']}\n\n{block}"
            entry = _upsert_entry(conn, diary_date, text)
            conn.executemany(
                "DELETE FROM diary_cache WHERE diary_datetime = ?", keys
            )
        return entry
