"""
Disk-backed staging store on SQLite.

For datasets whose id set does not fit in memory. The database file outlives
the process, so a finished run's entries stay available for audit until the
next reset(). Ids must be SQLite-bindable (int, float, str or bytes).
"""

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable, Sequence

from opentelemetry import trace

from datarecon.utils.tracing import trace_operation

from .base import DigestPair, StagingStore
from .entry import Classification, StagingEntry

logger = logging.getLogger(__name__)

# Stay under SQLITE_MAX_VARIABLE_NUMBER on old builds (999)
_IN_CHUNK = 500

_PREDICATES = {
    Classification.MATCH: (
        "source_digest IS NOT NULL AND target_digest IS NOT NULL "
        "AND source_digest = target_digest"
    ),
    Classification.SOURCE_ONLY: "source_digest IS NOT NULL AND target_digest IS NULL",
    Classification.TARGET_ONLY: "source_digest IS NULL AND target_digest IS NOT NULL",
    Classification.DIFFERING: (
        "source_digest IS NOT NULL AND target_digest IS NOT NULL "
        "AND source_digest <> target_digest"
    ),
}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS staging_entries (
    id PRIMARY KEY,
    source_digest TEXT,
    target_digest TEXT
);
CREATE TABLE IF NOT EXISTS staging_run (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


class SqliteStagingStore(StagingStore):
    """
    Staging table in a SQLite file.

    The id column has no declared type, so ids keep their Python type (1 and
    "1" are different ids). rowid order is insertion order and drives sample().
    """

    backend = "sqlite"

    def __init__(self, path: str | Path = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)
        logger.info(f"SQLite staging store opened at {self.path}")

    def _meta(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM staging_run WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def _set_meta(self, **values: str) -> None:
        self._conn.executemany(
            "INSERT INTO staging_run (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            list(values.items()),
        )

    def reset(self, run_id: str) -> None:
        with self._lock, trace_operation("staging.reset", backend=self.backend, run_id=run_id):
            self._conn.execute("BEGIN")
            try:
                self._conn.execute("DROP TABLE IF EXISTS staging_entries")
                self._conn.execute("DELETE FROM staging_run")
                self._conn.execute(
                    "CREATE TABLE staging_entries ("
                    "id PRIMARY KEY, source_digest TEXT, target_digest TEXT)"
                )
                self._set_meta(
                    run_id=run_id,
                    state="incomplete",
                    started_at=datetime.now(UTC).isoformat(),
                )
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
        logger.info(f"Staging store {self.path} reset for run {run_id}")

    def mark_complete(self) -> None:
        with self._lock:
            self._set_meta(state="complete", completed_at=datetime.now(UTC).isoformat())

    @property
    def run_id(self) -> str | None:
        with self._lock:
            return self._meta("run_id")

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._meta("state") == "complete"

    def _write_batch(self, sql: str, pairs: Sequence[DigestPair]) -> int:
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                cursor = self._conn.executemany(sql, pairs)
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
            return cursor.rowcount

    def upsert_source_batch(self, pairs: Sequence[DigestPair]) -> None:
        self._write_batch(
            "INSERT INTO staging_entries (id, source_digest) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET source_digest = excluded.source_digest",
            list(pairs),
        )

    def upsert_target_batch(self, pairs: Sequence[DigestPair]) -> int:
        return self._write_batch(
            "UPDATE staging_entries SET target_digest = ? WHERE id = ?",
            [(digest, record_id) for record_id, digest in pairs],
        )

    def count(self, classification: Classification) -> int:
        with self._lock, trace_operation(
            "staging.count", kind=trace.SpanKind.CLIENT, classification=classification.value
        ):
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM staging_entries WHERE {_PREDICATES[classification]}"
            ).fetchone()
            return int(row[0])

    def count_all(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM staging_entries").fetchone()[0])

    def sample(self, classification: Classification, limit: int) -> list[StagingEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, source_digest, target_digest FROM staging_entries "
                f"WHERE {_PREDICATES[classification]} ORDER BY rowid LIMIT ?",
                (max(limit, 0),),
            ).fetchall()
        return [StagingEntry(*row) for row in rows]

    def contains_ids(self, ids: Iterable[Any]) -> set[Any]:
        ids = list(ids)
        found: set[Any] = set()
        with self._lock:
            for start in range(0, len(ids), _IN_CHUNK):
                chunk = ids[start:start + _IN_CHUNK]
                placeholders = ", ".join("?" for _ in chunk)
                found.update(
                    row[0]
                    for row in self._conn.execute(
                        f"SELECT id FROM staging_entries WHERE id IN ({placeholders})", chunk
                    )
                )
        return found

    def get(self, record_id: Any) -> StagingEntry | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, source_digest, target_digest FROM staging_entries WHERE id = ?",
                (record_id,),
            ).fetchone()
        return StagingEntry(*row) if row else None

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.debug(f"SQLite staging store {self.path} closed")
