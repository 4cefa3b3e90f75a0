"""
Staging store interface.

A keyed side-table id -> (source digest, target digest) built by two passes.
Pass 1 creates or overwrites entries; pass 2 only updates entries that pass 1
created, so ids present only in the target never get an entry here and are
found by set difference instead.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

from .entry import Classification, StagingEntry

DigestPair = tuple[Any, str]

# Classifications a store can count directly; TARGET_ONLY never has entries.
STORED_CLASSIFICATIONS = (
    Classification.MATCH,
    Classification.SOURCE_ONLY,
    Classification.DIFFERING,
)


class StagingStore(ABC):
    """Abstract staging store; implementations must be safe for concurrent batch writes."""

    backend: str = "abstract"

    @abstractmethod
    def reset(self, run_id: str) -> None:
        """Drop all entries and mark the store incomplete for run `run_id`."""

    @abstractmethod
    def mark_complete(self) -> None:
        """Record that the current run finished all passes."""

    @property
    @abstractmethod
    def run_id(self) -> str | None:
        ...

    @property
    @abstractmethod
    def is_complete(self) -> bool:
        ...

    @abstractmethod
    def upsert_source_batch(self, pairs: Sequence[DigestPair]) -> None:
        """
        Create each id with the given source digest, or overwrite the source
        digest of an existing entry. Re-staging the same pairs is a no-op.
        """

    @abstractmethod
    def upsert_target_batch(self, pairs: Sequence[DigestPair]) -> int:
        """
        Set the target digest of ids that already have an entry. Unknown ids
        are skipped without creating an entry.

        Returns:
            Number of entries updated
        """

    @abstractmethod
    def count(self, classification: Classification) -> int:
        """Number of entries with the given classification."""

    @abstractmethod
    def count_all(self) -> int:
        ...

    @abstractmethod
    def sample(self, classification: Classification, limit: int) -> list[StagingEntry]:
        """Up to `limit` entries of the classification, in insertion order."""

    @abstractmethod
    def contains_ids(self, ids: Iterable[Any]) -> set[Any]:
        """The subset of `ids` that have an entry."""

    @abstractmethod
    def get(self, record_id: Any) -> StagingEntry | None:
        ...

    def upsert_source(self, record_id: Any, digest: str) -> None:
        self.upsert_source_batch([(record_id, digest)])

    def upsert_target(self, record_id: Any, digest: str) -> bool:
        """Returns False when the id is unknown (nothing was written)."""
        return self.upsert_target_batch([(record_id, digest)]) == 1

    def counts(self) -> dict[Classification, int]:
        return {classification: self.count(classification) for classification in STORED_CLASSIFICATIONS}

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
