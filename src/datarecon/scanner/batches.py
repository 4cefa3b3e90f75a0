"""
Deterministic, exhaustive paging of a record source into bounded batches.
"""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Iterable

from opentelemetry import trace

from datarecon.errors import RecordSourceUnavailable, unavailable_error_for
from datarecon.utils.retry import retry_database_operation
from datarecon.utils.tracing import trace_operation

from .sources import Record, RecordSource

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50_000


@dataclass(frozen=True)
class Batch:
    """One page of records from one side."""

    side: str
    index: int
    offset: int
    records: Sequence[Record]

    def __len__(self) -> int:
        return len(self.records)


class BatchScanner:
    """
    Lazily pages through a record source, `batch_size` records at a time.

    Pages are requested at offsets start_offset, start_offset + B, ... until
    the source returns an empty page; that empty page ends the scan and is not
    yielded. Every record is therefore covered exactly once, provided the
    source keeps a stable order for the duration of the scan.

    Any failure to read a page surfaces as SourceUnavailable or
    TargetUnavailable (by `side`) after `page_retries` retries of transient
    errors. A failed scan is not resumed.
    """

    def __init__(
        self,
        source: RecordSource,
        batch_size: int = DEFAULT_BATCH_SIZE,
        excluded_fields: Iterable[str] = (),
        side: str = "source",
        start_offset: int = 0,
        page_retries: int = 0,
        retry_base_delay: float = 1.0,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if start_offset < 0:
            raise ValueError(f"start_offset cannot be negative, got {start_offset}")

        self.source = source
        self.batch_size = batch_size
        self.excluded_fields = frozenset(excluded_fields)
        self.side = side
        self.start_offset = start_offset
        self.pages_read = 0

        self._error_type = unavailable_error_for(side)
        self._read_page = retry_database_operation(
            max_retries=page_retries, base_delay=retry_base_delay
        )(source.page_query)

    def fetch_page(self, offset: int) -> list[Record]:
        """
        Read one page at `offset`.

        Raises:
            SourceUnavailable / TargetUnavailable: Read failed or the source
                broke its contract by returning more than batch_size records
        """
        with trace_operation(
            "scanner.fetch_page",
            kind=trace.SpanKind.CLIENT,
            side=self.side,
            offset=offset,
            limit=self.batch_size,
        ):
            try:
                page = list(self._read_page(self.excluded_fields, offset, self.batch_size))
            except RecordSourceUnavailable:
                raise
            except Exception as e:
                logger.error(
                    f"Paging {self.side} failed at offset {offset}: {type(e).__name__}: {e}"
                )
                raise self._error_type(
                    f"{self.side} page read failed at offset {offset}: {e}", offset=offset
                ) from e

        self.pages_read += 1
        if len(page) > self.batch_size:
            raise self._error_type(
                f"{self.side} returned {len(page)} records for a page of "
                f"{self.batch_size} at offset {offset}",
                offset=offset,
            )
        return page

    def __iter__(self) -> Iterator[Batch]:
        offset = self.start_offset
        index = 0
        while True:
            page = self.fetch_page(offset)
            if not page:
                logger.debug(
                    f"{self.side} exhausted after {index} batches "
                    f"({offset - self.start_offset} records)"
                )
                return
            yield Batch(side=self.side, index=index, offset=offset, records=page)
            offset += len(page)
            index += 1

    def ids_of(self, batch: Batch) -> list[Any]:
        id_field = self.source.id_field
        return [record[id_field] for record in batch.records]
