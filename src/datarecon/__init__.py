"""
Record-level reconciliation of two large datasets

Determines which records are identical, which exist on one side only and
which differ, paging both sides in bounded batches through a staging store.

Components:
- canonical: Canonical forms and digests of records
- scanner: Record sources and the batch scanner
- staging: id -> (source digest, target digest) side-table
- engine: Two-pass reconciler, run context and worker pool
- report: Report generation and rendering
- scheduler: Periodic reconciliation

Usage:
    from datarecon.config import ReconcileConfig
    from datarecon.engine import DatasetReconciler
    from datarecon.staging import InMemoryStagingStore
"""

__version__ = "0.1.0"
__all__ = ["canonical", "scanner", "staging", "engine", "report", "scheduler"]
