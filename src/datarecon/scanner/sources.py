"""
Record sources: the narrow paging interface the scanner consumes.

Every source must return records in a stable order for the duration of a
pass. Offset paging over a store that is being written to concurrently can
skip or repeat rows; reconcile a live store from a snapshot (for example a
REPEATABLE READ or SNAPSHOT isolation transaction held open on the cursor).
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Iterable

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

# ASCII-only identifiers, optionally schema-qualified
VALID_IDENTIFIER_PATTERN = re.compile(
    r'^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$'
)


class RecordSource(ABC):
    """Paged, stably ordered access to one side of a reconciliation."""

    id_field: str = "id"

    @abstractmethod
    def count(self) -> int:
        """Number of records in the source."""

    @abstractmethod
    def page_query(
        self, projection_excluding: Iterable[str], offset: int, limit: int
    ) -> Sequence[Record]:
        """
        Return up to `limit` records starting at `offset` in the stable order,
        without the fields named in `projection_excluding` (the id field is
        always kept). An empty result means the source is exhausted.
        """

    @abstractmethod
    def distinct_ids(self) -> Iterable[Any]:
        """All record ids; used only to detect target-only records."""

    def describe(self) -> str:
        return type(self).__name__


def _projection(record: Record, excluded: Iterable[str], id_field: str) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.items()
        if key == id_field or key not in excluded
    }


class InMemoryRecordSource(RecordSource):
    """
    Records held in a list; the list order is the stable order.

    Intended for tests and for datasets small enough to hold in memory.
    """

    def __init__(self, records: Iterable[Record], id_field: str = "id"):
        self.id_field = id_field
        self._records = list(records)

        seen = set()
        for position, record in enumerate(self._records):
            if id_field not in record:
                raise ValueError(f"Record at position {position} has no {id_field!r} field")
            record_id = record[id_field]
            if record_id in seen:
                raise ValueError(f"Duplicate record id: {record_id!r}")
            seen.add(record_id)

    def count(self) -> int:
        return len(self._records)

    def page_query(self, projection_excluding, offset, limit):
        excluded = set(projection_excluding)
        return [
            _projection(record, excluded, self.id_field)
            for record in self._records[offset:offset + limit]
        ]

    def distinct_ids(self) -> Iterator[Any]:
        return (record[self.id_field] for record in self._records)

    def describe(self) -> str:
        return f"memory({len(self._records)} records)"


class JsonLinesRecordSource(RecordSource):
    """
    Newline-delimited JSON file; file order is the stable order.

    Blank lines are ignored. The byte position of the last page is remembered
    so that a sequential scan reads the file once.
    """

    def __init__(self, path: str | Path, id_field: str = "id", encoding: str = "utf-8"):
        self.path = Path(path)
        self.id_field = id_field
        self.encoding = encoding
        # (record offset, byte position) where the next sequential page starts
        self._resume_point = (0, 0)

        if not self.path.is_file():
            raise FileNotFoundError(f"Record file not found: {self.path}")

    def _iter_from(self, offset: int) -> Iterator[tuple[int, Record]]:
        """Yield (byte position after record, record) from record index `offset`."""
        start_offset, start_pos = self._resume_point
        if offset < start_offset:
            start_offset, start_pos = 0, 0

        with open(self.path, "rb") as f:
            f.seek(start_pos)
            index = start_offset
            for raw_line in iter(f.readline, b""):
                if not raw_line.strip():
                    continue
                if index >= offset:
                    try:
                        record = json.loads(raw_line.decode(self.encoding))
                    except (UnicodeDecodeError, json.JSONDecodeError) as e:
                        raise ValueError(
                            f"{self.path}: malformed JSON record #{index}: {e}"
                        ) from e
                    if not isinstance(record, dict) or self.id_field not in record:
                        raise ValueError(
                            f"{self.path}: record #{index} is not an object with "
                            f"an {self.id_field!r} field"
                        )
                    yield f.tell(), record
                index += 1

    def count(self) -> int:
        with open(self.path, "rb") as f:
            return sum(1 for line in f if line.strip())

    def page_query(self, projection_excluding, offset, limit):
        excluded = set(projection_excluding)
        page = []
        position = None
        for position, record in self._iter_from(offset):
            page.append(_projection(record, excluded, self.id_field))
            if len(page) >= limit:
                break

        if position is not None:
            self._resume_point = (offset + len(page), position)
        return page

    def distinct_ids(self) -> Iterator[Any]:
        with open(self.path, encoding=self.encoding) as f:
            for line in f:
                if line.strip():
                    yield json.loads(line)[self.id_field]

    def describe(self) -> str:
        return f"jsonl:{self.path}"


def detect_dialect(cursor: Any) -> str:
    """'postgresql' for psycopg2/psycopg cursors, 'sqlserver' for pyodbc."""
    module = type(cursor).__module__
    if "psycopg" in module:
        return "postgresql"
    if "pyodbc" in module:
        return "sqlserver"
    raise ValueError(
        f"Cannot detect SQL dialect of cursor type {type(cursor).__qualname__}; "
        "pass dialect='postgresql' or dialect='sqlserver'"
    )


def quote_identifier(identifier: str, dialect: str) -> str:
    """
    Validate and quote a (schema-qualified) identifier

    Raises:
        ValueError: Identifier is not a plain ASCII name
    """
    clean = identifier.replace("[", "").replace("]", "").replace('"', "")
    if not VALID_IDENTIFIER_PATTERN.match(clean):
        raise ValueError(f"Invalid identifier format: {identifier}")

    parts = clean.split(".")
    if dialect == "postgresql":
        return ".".join(f'"{part}"' for part in parts)
    return ".".join(f"[{part}]" for part in parts)


class SqlTableRecordSource(RecordSource):
    """
    One table behind a DB-API cursor (psycopg2 for PostgreSQL, pyodbc for
    SQL Server), paged with ORDER BY <id> and LIMIT/OFFSET or OFFSET/FETCH.
    """

    def __init__(
        self,
        cursor: Any,
        table: str,
        id_field: str = "id",
        dialect: str | None = None,
        id_fetch_size: int = 10000,
    ):
        self.cursor = cursor
        self.table = table
        self.id_field = id_field
        self.dialect = dialect or detect_dialect(cursor)
        self.id_fetch_size = id_fetch_size

        self._quoted_table = quote_identifier(table, self.dialect)
        self._quoted_id = quote_identifier(id_field, self.dialect)

    def count(self) -> int:
        self.cursor.execute(f"SELECT COUNT(*) FROM {self._quoted_table}")
        return int(self.cursor.fetchone()[0])

    def _page_sql(self) -> str:
        if self.dialect == "postgresql":
            return (
                f"SELECT * FROM {self._quoted_table} "
                f"ORDER BY {self._quoted_id} LIMIT %s OFFSET %s"
            )
        return (
            f"SELECT * FROM {self._quoted_table} "
            f"ORDER BY {self._quoted_id} OFFSET ? ROWS FETCH NEXT ? ROWS ONLY"
        )

    def page_query(self, projection_excluding, offset, limit):
        params = (int(limit), int(offset)) if self.dialect == "postgresql" else (int(offset), int(limit))
        self.cursor.execute(self._page_sql(), params)
        rows = self.cursor.fetchall()
        if not rows:
            return []

        columns = [desc[0] for desc in self.cursor.description]
        excluded = set(projection_excluding)
        return [_projection(dict(zip(columns, row)), excluded, self.id_field) for row in rows]

    def distinct_ids(self) -> Iterator[Any]:
        self.cursor.execute(
            f"SELECT {self._quoted_id} FROM {self._quoted_table} ORDER BY {self._quoted_id}"
        )
        while True:
            rows = self.cursor.fetchmany(self.id_fetch_size)
            if not rows:
                break
            for row in rows:
                yield row[0]

    def describe(self) -> str:
        return f"{self.dialect}:{self.table}"
