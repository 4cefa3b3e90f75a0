"""
Run-scoped state threaded through every batch of a reconciliation.

Nothing here is global: progress, failures and the cancel token belong to
one RunContext, which is passed to each batch and read back by the caller.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Iterable

from datarecon.errors import RunCancelled

SIDES = ("source", "target")


@dataclass(frozen=True)
class PassProgress:
    """Cumulative progress of one pass after a batch completed."""

    side: str
    batches: int
    records: int
    canonicalization_errors: int = 0
    failed_batches: int = 0


@dataclass(frozen=True)
class BatchFailure:
    """A batch whose staging write failed; its ids are unresolved."""

    side: str
    batch_index: int
    offset: int
    size: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "side": self.side,
            "batch_index": self.batch_index,
            "offset": self.offset,
            "size": self.size,
            "error": self.error,
        }


@dataclass
class _PassCounters:
    batches: int = 0
    records: int = 0
    canonicalization_errors: int = 0
    failed_batches: int = 0


class RunContext:
    """
    State of one reconciliation run

    Thread-safe: batch workers record into it concurrently. Call cancel()
    from any thread; the run stops at the next batch boundary.
    """

    def __init__(
        self,
        run_id: str | None = None,
        cancel_event: threading.Event | None = None,
        unresolved_sample_cap: int = 100,
    ):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.cancel_event = cancel_event or threading.Event()
        self.unresolved_sample_cap = unresolved_sample_cap
        self.started_at = datetime.now(UTC)

        self._lock = threading.Lock()
        self._passes = {side: _PassCounters() for side in SIDES}
        self._failures: list[BatchFailure] = []
        self._unresolved_count = 0
        # ids of failed batches per side; at most failed batches x page size
        self._failed_ids: dict[str, set[Any]] = {side: set() for side in SIDES}
        self._unresolved_sample: list[Any] = []

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def check_cancelled(self, side: str | None = None) -> None:
        """Raise RunCancelled if cancel() was called."""
        if self.cancel_event.is_set():
            batches = self._passes[side].batches if side in self._passes else 0
            raise RunCancelled(
                f"Run {self.run_id} cancelled"
                + (f" during {side} pass after {batches} batches" if side else ""),
                side=side,
                batches_done=batches,
            )

    def record_batch(self, side: str, records: int, canonicalization_errors: int = 0) -> PassProgress:
        with self._lock:
            counters = self._passes[side]
            counters.batches += 1
            counters.records += records
            counters.canonicalization_errors += canonicalization_errors
            return self._progress(side)

    def record_failure(self, failure: BatchFailure, ids: Iterable[Any] = ()) -> PassProgress:
        with self._lock:
            counters = self._passes[failure.side]
            counters.batches += 1
            counters.failed_batches += 1
            self._failures.append(failure)
            ids = list(ids)
            self._unresolved_count += failure.size
            self._failed_ids[failure.side].update(ids)
            room = self.unresolved_sample_cap - len(self._unresolved_sample)
            if room > 0:
                self._unresolved_sample.extend(ids[:room])
            return self._progress(failure.side)

    def _progress(self, side: str) -> PassProgress:
        counters = self._passes[side]
        return PassProgress(
            side=side,
            batches=counters.batches,
            records=counters.records,
            canonicalization_errors=counters.canonicalization_errors,
            failed_batches=counters.failed_batches,
        )

    def progress(self, side: str) -> PassProgress:
        with self._lock:
            return self._progress(side)

    @property
    def failures(self) -> list[BatchFailure]:
        with self._lock:
            return list(self._failures)

    @property
    def unresolved_count(self) -> int:
        """Records in failed batches, whatever they turn out to be."""
        with self._lock:
            return self._unresolved_count

    def failed_ids(self, side: str) -> frozenset[Any]:
        """Ids carried by the failed batches of one side."""
        with self._lock:
            return frozenset(self._failed_ids[side])

    @property
    def unresolved_sample(self) -> list[Any]:
        with self._lock:
            return list(self._unresolved_sample)
