"""
Two-pass dataset reconciliation.

Pass 1 stages a digest for every source record; pass 2 fills in target digests
for ids already staged (update only). Classification counts then come from the
staging store, and target-only ids from a set difference against the target's
distinct ids. Memory stays bounded by the page size and the worker count,
whatever the dataset size.
"""

import logging
import time
from collections.abc import Callable, Iterator, Set as AbstractSet
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

from datarecon.canonical import record_digest, unhashable_digest
from datarecon.config import ReconcileConfig
from datarecon.errors import (
    BatchError,
    CanonicalizationError,
    MissingRecordId,
    RecordSourceUnavailable,
    StagingWriteFailure,
    unavailable_error_for,
)
from datarecon.scanner import Batch, BatchScanner, RecordSource
from datarecon.staging import Classification, StagingEntry, StagingStore
from datarecon.utils.logging import ContextLogger
from datarecon.utils.metrics import (
    BATCH_SECONDS,
    BATCHES_TOTAL,
    CANONICALIZATION_ERRORS,
    RECORDS_HASHED,
    RUN_SECONDS,
    STAGING_WRITE_FAILURES,
    record_run_counts,
)
from datarecon.utils.tracing import add_span_attributes, add_span_event, trace_operation

from .context import BatchFailure, PassProgress, RunContext
from .workers import BatchWorkerPool

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PassProgress], None]


@dataclass
class BatchOutcome:
    records: int
    canonicalization_errors: int = 0
    written: int = 0


@dataclass
class ReconciliationResult:
    """
    Outcome of one run.

    `total` is the size of the union of source and target ids. When the run
    is partial, ids whose class depends on a failed batch are counted only in
    `unresolved_count`, never in a class, so
    match + source_only + target_only + differing + unresolved_count == total.
    """

    run_id: str
    source: str
    target: str
    total: int
    match: int
    source_only: int
    target_only: int
    differing: int
    differing_sample: list[StagingEntry] = field(default_factory=list)
    target_only_sample: list[Any] = field(default_factory=list)
    source_only_sample: list[Any] = field(default_factory=list)
    canonicalization_errors: dict[str, int] = field(default_factory=dict)
    failed_batches: list[BatchFailure] = field(default_factory=list)
    unresolved_count: int = 0
    unresolved_sample: list[Any] = field(default_factory=list)
    sample_cap: int = 10
    excluded_fields: list[str] = field(default_factory=list)
    hash_algorithm: str = "sha256"
    staging_backend: str = "memory"
    started_at: str = ""
    finished_at: str = ""
    duration_seconds: float = 0.0

    @property
    def not_shown(self) -> int:
        return max(self.differing - len(self.differing_sample), 0)

    @property
    def partial(self) -> bool:
        return bool(self.failed_batches)

    @property
    def status(self) -> str:
        if self.partial:
            return "PARTIAL"
        return "PASS" if self.match == self.total else "FAIL"

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "match": self.match,
            "source_only": self.source_only,
            "target_only": self.target_only,
            "differing": self.differing,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "source": self.source,
            "target": self.target,
            "status": self.status,
            "partial": self.partial,
            **self.counts(),
            "differing_sample": [entry.to_dict() for entry in self.differing_sample],
            "not_shown": self.not_shown,
            "target_only_sample": list(self.target_only_sample),
            "source_only_sample": list(self.source_only_sample),
            "canonicalization_errors": dict(self.canonicalization_errors),
            "failed_batches": [failure.to_dict() for failure in self.failed_batches],
            "unresolved_count": self.unresolved_count,
            "unresolved_sample": list(self.unresolved_sample),
            "sample_cap": self.sample_cap,
            "excluded_fields": list(self.excluded_fields),
            "hash_algorithm": self.hash_algorithm,
            "staging_backend": self.staging_backend,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": self.duration_seconds,
        }


class DatasetReconciler:
    """
    Reconciles a source against a target through a staging store.

    Example:
        >>> reconciler = DatasetReconciler(source, target, InMemoryStagingStore(),
        ...                                ReconcileConfig(excluded_fields={"updatedAt"}))
        >>> result = reconciler.run()
        >>> print(result.status, result.counts())
    """

    def __init__(
        self,
        source: RecordSource,
        target: RecordSource,
        store: StagingStore,
        config: ReconcileConfig | None = None,
        retry_base_delay: float = 1.0,
    ):
        self.source = source
        self.target = target
        self.store = store
        self.config = config or ReconcileConfig()
        self.retry_base_delay = retry_base_delay
        self.pool = BatchWorkerPool(self.config.workers)

    def _scanner(self, side: str) -> BatchScanner:
        return BatchScanner(
            self.source if side == "source" else self.target,
            batch_size=self.config.batch_size,
            excluded_fields=self.config.excluded_fields,
            side=side,
            page_retries=self.config.page_retries,
            retry_base_delay=self.retry_base_delay,
        )

    def hash_batch(self, batch: Batch, id_field: str) -> tuple[list[tuple[Any, str]], int]:
        """
        Digest every record of a batch.

        A record that cannot be canonicalized gets the side's sentinel digest
        instead of aborting the batch. A record without an id cannot be keyed
        at all, so it fails the whole batch.

        Returns:
            ([(id, digest), ...], number of canonicalization errors)

        Raises:
            MissingRecordId: A record has no `id_field`
        """
        missing = [
            position for position, record in enumerate(batch.records) if id_field not in record
        ]
        if missing:
            raise MissingRecordId(
                f"{batch.side} batch {batch.index} (offset {batch.offset}): "
                f"{len(missing)} record(s) without {id_field!r}, first at offset "
                f"{batch.offset + missing[0]}",
                side=batch.side,
                batch_index=batch.index,
                ids=[record[id_field] for record in batch.records if id_field in record],
            )

        pairs = []
        errors = 0
        for record in batch.records:
            record_id = record[id_field]
            try:
                value = record_digest(
                    record,
                    self.config.excluded_fields,
                    self.config.hash_algorithm,
                    record_id=record_id,
                )
            except CanonicalizationError as e:
                logger.warning(f"{batch.side} record {record_id!r} forced to mismatch: {e}")
                value = unhashable_digest(batch.side)
                errors += 1
            pairs.append((record_id, value))
        return pairs, errors

    def _stage_batch(self, batch: Batch) -> BatchOutcome:
        id_field = (self.source if batch.side == "source" else self.target).id_field
        start = time.monotonic()
        with trace_operation(
            f"reconcile.{batch.side}.batch",
            side=batch.side,
            batch_index=batch.index,
            offset=batch.offset,
            size=len(batch),
        ):
            pairs, errors = self.hash_batch(batch, id_field)
            try:
                if batch.side == "source":
                    self.store.upsert_source_batch(pairs)
                    written = len(pairs)
                else:
                    written = self.store.upsert_target_batch(pairs)
            except Exception as e:
                raise StagingWriteFailure(
                    f"{batch.side} batch {batch.index} (offset {batch.offset}) "
                    f"failed to stage: {type(e).__name__}: {e}",
                    side=batch.side,
                    batch_index=batch.index,
                    ids=[record_id for record_id, _ in pairs],
                ) from e
            add_span_attributes(canonicalization_errors=errors, written=written)

        BATCH_SECONDS.labels(side=batch.side).observe(time.monotonic() - start)
        RECORDS_HASHED.labels(side=batch.side).inc(len(pairs))
        if errors:
            CANONICALIZATION_ERRORS.labels(side=batch.side).inc(errors)
        return BatchOutcome(records=len(pairs), canonicalization_errors=errors, written=written)

    def stage_pass(self, side: str, context: RunContext) -> Iterator[PassProgress]:
        """
        Run one pass, yielding cumulative progress after every batch.

        Staging write failures are recorded in `context` and the pass
        continues; a page read failure or cancellation ends the pass with an
        exception.
        """
        log = ContextLogger(__name__, run_id=context.run_id, side=side)
        scanner = self._scanner(side)
        log.info(f"Starting {side} pass over {scanner.source.describe()}")

        with trace_operation(f"reconcile.{side}_pass", run_id=context.run_id, side=side):
            for batch, outcome, error in self.pool.map(scanner, self._stage_batch, context, side):
                if error is None:
                    BATCHES_TOTAL.labels(side=side, status="success").inc()
                    progress = context.record_batch(
                        side, outcome.records, outcome.canonicalization_errors
                    )
                elif isinstance(error, BatchError):
                    BATCHES_TOTAL.labels(side=side, status="failed").inc()
                    if isinstance(error, StagingWriteFailure):
                        STAGING_WRITE_FAILURES.labels(side=side).inc()
                    log.error(str(error))
                    add_span_event("batch_failed", batch_index=batch.index, offset=batch.offset)
                    progress = context.record_failure(
                        BatchFailure(
                            side=side,
                            batch_index=batch.index,
                            offset=batch.offset,
                            size=len(batch),
                            error=str(error.__cause__ or error),
                        ),
                        ids=error.ids,
                    )
                else:
                    raise error
                log.debug(
                    f"{side} batch {batch.index} done: {progress.records} records "
                    f"in {progress.batches} batches"
                )
                yield progress

        final = context.progress(side)
        log.info(
            f"{side} pass complete: {final.records} records, {final.batches} batches, "
            f"{final.failed_batches} failed, "
            f"{final.canonicalization_errors} canonicalization errors"
        )

    def find_unresolved(self, context: RunContext) -> tuple[set[Any], set[Any]]:
        """
        Ids whose classification depends on a failed batch.

        - source: ids of failed source batches that have no staging entry;
          they would otherwise surface as target-only (or vanish)
        - target: staged ids of failed target batches still lacking a target
          digest; they would otherwise surface as source-only

        Ids a failed write staged anyway are resolved and left out. Target ids
        of a failed batch with no entry are genuinely target-only and are
        left to find_target_only().

        Returns:
            (unresolved source ids, unresolved target ids), disjoint
        """
        failed_source = context.failed_ids("source")
        unresolved_source = set(failed_source) - self.store.contains_ids(failed_source)

        unresolved_target = set()
        for record_id in context.failed_ids("target") - unresolved_source:
            entry = self.store.get(record_id)
            if entry is not None and entry.target_digest is None:
                unresolved_target.add(record_id)

        if unresolved_source or unresolved_target:
            logger.warning(
                f"{len(unresolved_source)} source and {len(unresolved_target)} target ids "
                f"left unclassified by failed batches"
            )
        return unresolved_source, unresolved_target

    def find_target_only(
        self, context: RunContext, exclude: AbstractSet[Any] = frozenset()
    ) -> tuple[int, list[Any]]:
        """
        Count target ids with no staging entry.

        Ids in `exclude` (source ids whose batch failed to stage) have no
        entry either, but are not target-only.

        Returns:
            (count, first sample_cap such ids in target order)
        """
        cap = self.config.sample_cap
        count = 0
        sample: list[Any] = []
        chunk: list[Any] = []

        def flush():
            nonlocal count
            present = self.store.contains_ids(chunk)
            for record_id in chunk:
                if record_id not in present and record_id not in exclude:
                    count += 1
                    if len(sample) < cap:
                        sample.append(record_id)
            chunk.clear()

        with trace_operation("reconcile.target_only", run_id=context.run_id):
            try:
                for record_id in self.target.distinct_ids():
                    chunk.append(record_id)
                    if len(chunk) >= self.config.batch_size:
                        context.check_cancelled("target")
                        flush()
                if chunk:
                    flush()
            except RecordSourceUnavailable:
                raise
            except Exception as e:
                raise unavailable_error_for("target")(
                    f"target distinct id scan failed: {e}"
                ) from e
            add_span_attributes(target_only=count)
        return count, sample

    def run(
        self,
        context: RunContext | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ReconciliationResult:
        """
        Reconcile source against target.

        Args:
            context: Run state; a fresh one is created when omitted
            on_progress: Called with a PassProgress after every batch

        Raises:
            SourceUnavailable / TargetUnavailable: A page read failed
            RunCancelled: context.cancel() was called
        """
        context = context or RunContext(unresolved_sample_cap=max(self.config.sample_cap, 100))
        log = ContextLogger(__name__, run_id=context.run_id)
        start = time.monotonic()

        with trace_operation(
            "reconcile.run",
            kind=trace.SpanKind.INTERNAL,
            run_id=context.run_id,
            batch_size=self.config.batch_size,
            workers=self.config.workers,
        ):
            log.info(
                f"Reconciling {self.source.describe()} -> {self.target.describe()} "
                f"(batch_size={self.config.batch_size}, workers={self.config.workers}, "
                f"staging={self.store.backend})"
            )
            self.store.reset(context.run_id)

            for side in ("source", "target"):
                for progress in self.stage_pass(side, context):
                    if on_progress is not None:
                        on_progress(progress)

            counts = self.store.counts()
            total_staged = self.store.count_all()
            unresolved_source, unresolved_target = self.find_unresolved(context)
            target_only, target_only_sample = self.find_target_only(context, unresolved_source)
            differing = counts[Classification.DIFFERING]
            cap = self.config.sample_cap
            unresolved = unresolved_source | unresolved_target

            result = ReconciliationResult(
                run_id=context.run_id,
                source=self.source.describe(),
                target=self.target.describe(),
                total=total_staged + target_only + len(unresolved_source),
                match=counts[Classification.MATCH],
                source_only=counts[Classification.SOURCE_ONLY] - len(unresolved_target),
                target_only=target_only,
                differing=differing,
                differing_sample=self.store.sample(Classification.DIFFERING, cap),
                target_only_sample=target_only_sample,
                source_only_sample=[
                    entry.id
                    for entry in self.store.sample(
                        Classification.SOURCE_ONLY, cap + len(unresolved_target)
                    )
                    if entry.id not in unresolved_target
                ][:cap],
                canonicalization_errors={
                    side: context.progress(side).canonicalization_errors
                    for side in ("source", "target")
                },
                failed_batches=context.failures,
                unresolved_count=len(unresolved),
                unresolved_sample=[
                    record_id for record_id in context.unresolved_sample if record_id in unresolved
                ],
                sample_cap=cap,
                excluded_fields=sorted(self.config.excluded_fields),
                hash_algorithm=self.config.hash_algorithm,
                staging_backend=self.store.backend,
                started_at=context.started_at.isoformat(),
            )
            self.store.mark_complete()

            duration = time.monotonic() - start
            result.finished_at = datetime.now(UTC).isoformat()
            result.duration_seconds = round(duration, 3)
            RUN_SECONDS.observe(duration)
            record_run_counts(result.counts())
            add_span_attributes(status=result.status, **result.counts())

        log.info(
            f"Run {result.status}: total={result.total} match={result.match} "
            f"source_only={result.source_only} target_only={result.target_only} "
            f"differing={result.differing} in {result.duration_seconds}s"
        )
        if result.partial:
            log.warning(
                f"Partial result: {len(result.failed_batches)} batch failures, "
                f"{result.unresolved_count} ids unresolved"
            )
        return result
