"""
Periodic reconciliation with APScheduler.
"""

from .jobs import reconcile_job
from .scheduler import ReconciliationScheduler

__all__ = ["ReconciliationScheduler", "reconcile_job"]
