"""
Record sources and the batch scanner that pages through them.
"""

from .batches import DEFAULT_BATCH_SIZE, Batch, BatchScanner
from .sources import (
    InMemoryRecordSource,
    JsonLinesRecordSource,
    Record,
    RecordSource,
    SqlTableRecordSource,
    detect_dialect,
    quote_identifier,
)

__all__ = [
    "Batch",
    "BatchScanner",
    "DEFAULT_BATCH_SIZE",
    "Record",
    "RecordSource",
    "InMemoryRecordSource",
    "JsonLinesRecordSource",
    "SqlTableRecordSource",
    "detect_dialect",
    "quote_identifier",
]
