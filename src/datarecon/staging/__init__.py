"""
Staging store: id -> {source digest, target digest} side-table for one run.

Backends:
- InMemoryStagingStore: dict in insertion order
- SqliteStagingStore: disk-backed, for id sets larger than memory
"""

from .base import STORED_CLASSIFICATIONS, StagingStore
from .entry import Classification, StagingEntry, classify
from .memory import InMemoryStagingStore
from .sqlite import SqliteStagingStore


def open_staging_store(spec: str = "memory") -> StagingStore:
    """
    Build a store from a spec string: 'memory' or 'sqlite:<path>'.

    Raises:
        ValueError: Unknown spec
    """
    if spec == "memory":
        return InMemoryStagingStore()
    if spec.startswith("sqlite:"):
        path = spec[len("sqlite:"):]
        if not path:
            raise ValueError("sqlite staging spec needs a path, e.g. sqlite:./staging.db")
        return SqliteStagingStore(path)
    raise ValueError(f"Unknown staging store spec: {spec!r} (use 'memory' or 'sqlite:<path>')")


__all__ = [
    "Classification",
    "StagingEntry",
    "StagingStore",
    "STORED_CLASSIFICATIONS",
    "InMemoryStagingStore",
    "SqliteStagingStore",
    "classify",
    "open_staging_store",
]
