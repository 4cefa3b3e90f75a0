"""
In-process staging store for datasets whose id set fits in memory.
"""

import itertools
import logging
import threading
from typing import Any, Iterable, Sequence

from .base import DigestPair, StagingStore
from .entry import Classification, StagingEntry, classify

logger = logging.getLogger(__name__)


class InMemoryStagingStore(StagingStore):
    """
    Dict-backed store; dict insertion order gives the deterministic sample order.

    Memory use is roughly one small object per source id.
    """

    backend = "memory"

    def __init__(self):
        self._entries: dict[Any, StagingEntry] = {}
        self._lock = threading.Lock()
        self._run_id: str | None = None
        self._complete = False

    def reset(self, run_id: str) -> None:
        with self._lock:
            self._entries = {}
            self._run_id = run_id
            self._complete = False
        logger.debug(f"In-memory staging store reset for run {run_id}")

    def mark_complete(self) -> None:
        self._complete = True

    @property
    def run_id(self) -> str | None:
        return self._run_id

    @property
    def is_complete(self) -> bool:
        return self._complete

    def upsert_source_batch(self, pairs: Sequence[DigestPair]) -> None:
        with self._lock:
            for record_id, digest in pairs:
                entry = self._entries.get(record_id)
                if entry is None:
                    self._entries[record_id] = StagingEntry(record_id, source_digest=digest)
                else:
                    entry.source_digest = digest

    def upsert_target_batch(self, pairs: Sequence[DigestPair]) -> int:
        updated = 0
        with self._lock:
            for record_id, digest in pairs:
                entry = self._entries.get(record_id)
                if entry is not None:
                    entry.target_digest = digest
                    updated += 1
        return updated

    def _matching(self, classification: Classification):
        return (
            entry for entry in self._entries.values()
            if classify(entry.source_digest, entry.target_digest) is classification
        )

    def count(self, classification: Classification) -> int:
        with self._lock:
            return sum(1 for _ in self._matching(classification))

    def count_all(self) -> int:
        with self._lock:
            return len(self._entries)

    def sample(self, classification: Classification, limit: int) -> list[StagingEntry]:
        with self._lock:
            return [
                StagingEntry(entry.id, entry.source_digest, entry.target_digest)
                for entry in itertools.islice(self._matching(classification), max(limit, 0))
            ]

    def contains_ids(self, ids: Iterable[Any]) -> set[Any]:
        with self._lock:
            return {record_id for record_id in ids if record_id in self._entries}

    def get(self, record_id: Any) -> StagingEntry | None:
        with self._lock:
            entry = self._entries.get(record_id)
            if entry is None:
                return None
            return StagingEntry(entry.id, entry.source_digest, entry.target_digest)
