"""
Scheduled reconciliation job.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from datarecon.config import ReconcileConfig
from datarecon.errors import ReconciliationError
from datarecon.report import export_report_json, generate_report
from datarecon.runner import execute

logger = logging.getLogger(__name__)


def reconcile_job(
    config: ReconcileConfig,
    output_dir: str,
    use_vault: bool = False,
) -> dict[str, Any] | None:
    """
    Run one reconciliation and save its report as
    `<output_dir>/reconcile_<UTC timestamp>.json`

    Errors are logged and the job returns None, so one failed run does not
    stop the schedule.
    """
    started = datetime.now(UTC)
    logger.info(f"Scheduled reconciliation started: {config.source} -> {config.target}")

    try:
        result = execute(config, use_vault=use_vault)
    except (ReconciliationError, ValueError, OSError) as e:
        logger.error(f"Scheduled reconciliation failed: {type(e).__name__}: {e}")
        return None

    report = generate_report(result)
    output_path = Path(output_dir) / f"reconcile_{started.strftime('%Y%m%d_%H%M%S')}.json"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    export_report_json(report, str(output_path))

    logger.info(f"Scheduled reconciliation {report['status']}; report saved to {output_path}")
    return report
