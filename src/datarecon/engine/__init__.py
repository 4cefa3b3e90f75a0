"""
Reconciliation engine: run context, batch worker pool and the two-pass reconciler.
"""

from .context import BatchFailure, PassProgress, RunContext
from .reconciler import DatasetReconciler, ReconciliationResult
from .workers import BatchWorkerPool

__all__ = [
    "BatchFailure",
    "BatchWorkerPool",
    "DatasetReconciler",
    "PassProgress",
    "ReconciliationResult",
    "RunContext",
]
