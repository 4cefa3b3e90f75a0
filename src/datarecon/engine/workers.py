"""
Batch-level parallelism for a reconciliation pass.

Pages are always read in order on the calling thread; only the CPU side of a
batch (canonicalize, hash, stage) is handed to worker threads. At most
2 * max_workers batches are in flight, which bounds memory to a few pages.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, TypeVar

from datarecon.scanner import Batch

from .context import RunContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (batch, result, error); exactly one of result / error is set
BatchResult = tuple[Batch, Any, BaseException | None]


class BatchWorkerPool:
    """
    Runs a function over a stream of batches.

    Results come back as batches finish, not in batch order. An exception
    raised by the function is returned alongside its batch so the caller
    decides whether it is fatal; an exception raised by the batch iterator
    itself (a failed page read) propagates after in-flight work is drained.
    """

    def __init__(self, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.max_in_flight = 2 * max_workers

    def map(
        self,
        batches: Iterable[Batch],
        func: Callable[[Batch], T],
        context: RunContext,
        side: str,
    ) -> Iterator[BatchResult]:
        if self.max_workers == 1:
            yield from self._map_inline(batches, func, context, side)
        else:
            yield from self._map_threaded(batches, func, context, side)

    def _map_inline(self, batches, func, context, side) -> Iterator[BatchResult]:
        for batch in batches:
            context.check_cancelled(side)
            try:
                result = func(batch)
            except Exception as e:
                yield batch, None, e
            else:
                yield batch, result, None
            context.check_cancelled(side)

    def _map_threaded(self, batches, func, context, side) -> Iterator[BatchResult]:
        pending: dict[Future, Batch] = {}
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=f"datarecon-{side}"
        )
        try:
            for batch in batches:
                context.check_cancelled(side)
                pending[executor.submit(func, batch)] = batch
                if len(pending) >= self.max_in_flight:
                    yield from self._drain(pending, return_when=FIRST_COMPLETED)
            while pending:
                yield from self._drain(pending, return_when=FIRST_COMPLETED)
                context.check_cancelled(side)
        finally:
            for future in pending:
                future.cancel()
            executor.shutdown(wait=True)
            if pending:
                logger.debug(f"{side} pass stopped with {len(pending)} batches in flight")

    @staticmethod
    def _drain(pending: dict[Future, Batch], return_when) -> Iterator[BatchResult]:
        done, _ = wait(list(pending), return_when=return_when)
        for future in done:
            batch = pending.pop(future)
            error = future.exception()
            yield batch, (None if error else future.result()), error
