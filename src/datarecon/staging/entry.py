"""
Staging entries and their derived classification.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Classification(str, Enum):
    """Outcome for one id. Derived from an entry's digests, never stored."""

    MATCH = "match"
    SOURCE_ONLY = "source_only"
    TARGET_ONLY = "target_only"
    DIFFERING = "differing"


@dataclass
class StagingEntry:
    """Per-id pairing of source and target digests during one run."""

    id: Any
    source_digest: str | None = None
    target_digest: str | None = None

    @property
    def classification(self) -> Classification:
        return classify(self.source_digest, self.target_digest)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_digest": self.source_digest,
            "target_digest": self.target_digest,
        }


def classify(source_digest: str | None, target_digest: str | None) -> Classification:
    """
    Classify a digest pair

    An entry with neither digest cannot exist in a store; it is reported as
    TARGET_ONLY only to keep this function total.
    """
    if target_digest is None:
        return Classification.SOURCE_ONLY if source_digest is not None else Classification.TARGET_ONLY
    if source_digest is None:
        return Classification.TARGET_ONLY
    if source_digest == target_digest:
        return Classification.MATCH
    return Classification.DIFFERING
