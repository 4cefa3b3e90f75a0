"""
One reconciliation run from a ReconcileConfig: open both sides and the
staging store, reconcile, close everything.
"""

import logging

from datarecon.config import ReconcileConfig
from datarecon.connections import open_record_source
from datarecon.engine import DatasetReconciler, ReconciliationResult, RunContext
from datarecon.engine.reconciler import ProgressCallback
from datarecon.staging import open_staging_store
from datarecon.utils.tracing import trace_function

logger = logging.getLogger(__name__)


@trace_function("reconcile.execute")
def execute(
    config: ReconcileConfig,
    use_vault: bool = False,
    context: RunContext | None = None,
    on_progress: ProgressCallback | None = None,
) -> ReconciliationResult:
    """
    Run a reconciliation described entirely by `config`

    Raises:
        ValueError: source or target handle missing
        SourceUnavailable / TargetUnavailable, RunCancelled: see DatasetReconciler.run
    """
    if not config.source or not config.target:
        raise ValueError("Both a source and a target handle are required")

    with open_record_source(config.source, config.id_field, use_vault) as source, \
            open_record_source(config.target, config.id_field, use_vault) as target, \
            open_staging_store(config.staging) as store:
        reconciler = DatasetReconciler(source, target, store, config)
        return reconciler.run(context=context, on_progress=on_progress)
