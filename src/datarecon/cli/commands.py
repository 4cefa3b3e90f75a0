"""
CLI command implementations.

Each command returns the process exit code:
0 PASS, 1 FAIL or PARTIAL, 2 fatal error (unreadable side, bad configuration).
"""

import argparse
import logging
from pathlib import Path

from datarecon.config import ReconcileConfig, parse_field_list
from datarecon.engine import PassProgress
from datarecon.errors import ReconciliationError
from datarecon.report import (
    Status,
    export_report_csv,
    export_report_json,
    format_report_console,
    generate_report,
    load_report_json,
)
from datarecon.runner import execute
from datarecon.scheduler import ReconciliationScheduler, reconcile_job

logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_MISMATCH = 1
EXIT_FATAL = 2


def build_config(args: argparse.Namespace) -> ReconcileConfig:
    """Environment-derived config with command-line flags on top."""
    return ReconcileConfig.from_env().with_overrides(
        source=args.source,
        target=args.target,
        excluded_fields=parse_field_list(args.exclude) if args.exclude is not None else None,
        id_field=args.id_field,
        batch_size=args.batch_size,
        sample_cap=args.sample_cap,
        workers=args.workers,
        page_retries=args.page_retries,
        staging=args.staging,
        hash_algorithm=args.hash_algorithm,
    )


def _log_progress(progress: PassProgress) -> None:
    logger.info(
        f"{progress.side}: {progress.records:,} records in {progress.batches} batches"
    )


def write_report(report: dict, output_format: str, output: str | None) -> None:
    if not output or output_format == "console":
        print(format_report_console(report))
        return

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_format == "json":
        export_report_json(report, str(output_path))
    else:
        export_report_csv(report, str(output_path))
    logger.info(f"Report saved to {output_path}")


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run a one-time reconciliation

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    try:
        config = build_config(args)
        result = execute(config, use_vault=args.use_vault, on_progress=_log_progress)
    except (ReconciliationError, ValueError, OSError) as e:
        logger.error(f"Reconciliation failed: {type(e).__name__}: {e}")
        return EXIT_FATAL

    report = generate_report(result)
    write_report(report, args.format, args.output)

    if report["status"] == Status.PASS:
        logger.info("Reconciliation completed: datasets match")
        return EXIT_PASS
    logger.warning(f"Reconciliation finished with status {report['status']}")
    return EXIT_MISMATCH


def cmd_schedule(args: argparse.Namespace) -> int:
    """
    Schedule periodic reconciliation jobs (blocks until interrupted)

    Args:
        args: Parsed command-line arguments
    """
    try:
        config = build_config(args)
        if not config.source or not config.target:
            raise ValueError("Both --source and --target (or DATARECON_SOURCE/TARGET) are required")
        Path(args.output_dir).mkdir(parents=True, exist_ok=True)

        scheduler = ReconciliationScheduler()
        job_kwargs = {
            "config": config,
            "output_dir": args.output_dir,
            "use_vault": args.use_vault,
        }
        if args.cron:
            scheduler.add_cron_job(reconcile_job, args.cron, "reconciliation_job", **job_kwargs)
        else:
            scheduler.add_interval_job(
                reconcile_job, args.interval, "reconciliation_job", **job_kwargs
            )
    except (ValueError, OSError) as e:
        logger.error(f"Cannot schedule reconciliation: {e}")
        return EXIT_FATAL

    logger.info("Starting scheduler (press Ctrl+C to stop)")
    scheduler.start()
    return EXIT_PASS


def cmd_report(args: argparse.Namespace) -> int:
    """
    Render a report saved by `run --format json` or by the scheduler

    Args:
        args: Parsed command-line arguments
    """
    logger.info(f"Loading reconciliation report from {args.input}")
    try:
        report = load_report_json(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read report {args.input}: {e}")
        return EXIT_FATAL

    if args.format != "console" and not args.output:
        logger.error(f"Output file required for {args.format.upper()} format")
        return EXIT_FATAL

    write_report(report, args.format, args.output)
    return EXIT_PASS
