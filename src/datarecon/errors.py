"""
Exceptions raised by the reconciliation engine.

Fatal (abort the run):
    SourceUnavailable, TargetUnavailable, RunCancelled
Per-batch (logged, counted, run continues):
    StagingWriteFailure, MissingRecordId
Per-record (record becomes a forced mismatch):
    CanonicalizationError
"""

from typing import Any


class ReconciliationError(Exception):
    """Base exception for datarecon."""

    pass


class CanonicalizationError(ReconciliationError):
    """Raised when a record cannot be turned into a canonical form."""

    def __init__(self, message: str, record_id: Any = None):
        super().__init__(message)
        self.record_id = record_id


class RecordSourceUnavailable(ReconciliationError):
    """Paging or connection failure while scanning one side."""

    side = "unknown"

    def __init__(self, message: str, offset: int | None = None):
        super().__init__(message)
        self.offset = offset


class SourceUnavailable(RecordSourceUnavailable):
    """The source could not be paged; the run is aborted."""

    side = "source"


class TargetUnavailable(RecordSourceUnavailable):
    """The target could not be paged; the run is aborted."""

    side = "target"


class BatchError(ReconciliationError):
    """One batch could not be staged; its ids are unresolved."""

    def __init__(self, message: str, side: str, batch_index: int, ids: list | None = None):
        super().__init__(message)
        self.side = side
        self.batch_index = batch_index
        self.ids = ids or []


class StagingWriteFailure(BatchError):
    """A batched write to the staging store failed."""


class MissingRecordId(BatchError):
    """A record has no id field, so its batch cannot be keyed."""


class RunCancelled(ReconciliationError):
    """The run's cancel token was set; raised at the next batch boundary."""

    def __init__(self, message: str, side: str | None = None, batches_done: int = 0):
        super().__init__(message)
        self.side = side
        self.batches_done = batches_done


def unavailable_error_for(side: str) -> type[RecordSourceUnavailable]:
    """Map a pass side to its unavailable exception type."""
    if side == "source":
        return SourceUnavailable
    if side == "target":
        return TargetUnavailable
    raise ValueError(f"Unknown side: {side!r}")
