"""
Command-line argument parser configuration.
"""

import argparse

from datarecon.canonical import SUPPORTED_ALGORITHMS

REPORT_FORMATS = ["console", "json", "csv"]


def _add_reconcile_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by `run` and `schedule`; unset ones fall back to DATARECON_* env."""
    parser.add_argument(
        '--source',
        help='Source handle: jsonl:<path>, postgres:<table> or sqlserver:<table>'
    )
    parser.add_argument(
        '--target',
        help='Target handle: jsonl:<path>, postgres:<table> or sqlserver:<table>'
    )
    parser.add_argument(
        '--exclude',
        help='Comma-separated top-level fields to leave out of the comparison'
    )
    parser.add_argument('--id-field', help='Identifier field (default: id)')
    parser.add_argument('--batch-size', type=int, help='Records per page (default: 50000)')
    parser.add_argument(
        '--sample-cap',
        type=int,
        help='Differing records listed in the report (default: 10)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Threads hashing and staging batches (default: 1)'
    )
    parser.add_argument(
        '--page-retries',
        type=int,
        help='Retries of a failed page read on transient errors (default: 2)'
    )
    parser.add_argument(
        '--staging',
        help="Staging store: 'memory' or 'sqlite:<path>' (default: memory)"
    )
    parser.add_argument(
        '--hash-algorithm',
        choices=list(SUPPORTED_ALGORITHMS),
        help='Digest algorithm (default: sha256)'
    )
    parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch database credentials from HashiCorp Vault'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="datarecon",
        description="Reconcile two large datasets record by record",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compare two JSON Lines exports, ignoring volatile fields
  datarecon run --source jsonl:source.jsonl --target jsonl:target.jsonl \\
      --exclude updatedAt,syncedAt

  # SQL Server table against its PostgreSQL replica, disk-backed staging
  datarecon run --source sqlserver:dbo.customers --target postgres:public.customers \\
      --staging sqlite:./staging.db --workers 4 --format json --output report.json

  # Every 6 hours, credentials from Vault
  datarecon schedule --cron "0 */6 * * *" --use-vault \\
      --source sqlserver:dbo.orders --target postgres:public.orders

  # Re-render a saved report
  datarecon report --input report.json --format console
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument('--log-file', help='Also log to this file (rotated)')
    parser.add_argument('--log-json', action='store_true', help='Structured JSON logs')
    parser.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port'
    )
    parser.add_argument(
        '--otlp-endpoint',
        help='Export traces to this OTLP collector (or set OTLP_ENDPOINT)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Run command ==========
    run_parser = subparsers.add_parser('run', help='Run one-time reconciliation')
    _add_reconcile_options(run_parser)
    run_parser.add_argument(
        '--format',
        choices=REPORT_FORMATS,
        default='console',
        help='Output format (default: console)'
    )
    run_parser.add_argument('--output', help='Output file path for report')

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser('schedule', help='Schedule periodic reconciliation')
    _add_reconcile_options(schedule_parser)
    schedule_parser.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 */6 * * *" for every 6 hours)'
    )
    schedule_parser.add_argument(
        '--interval',
        type=int,
        default=3600,
        help='Interval in seconds (default: 3600 = 1 hour)'
    )
    schedule_parser.add_argument(
        '--output-dir',
        default='./reconciliation_reports',
        help='Directory for timestamped JSON reports'
    )

    # ========== Report command ==========
    report_parser = subparsers.add_parser('report', help='Render a saved JSON report')
    report_parser.add_argument('--input', required=True, help='Input JSON report file')
    report_parser.add_argument(
        '--format',
        choices=REPORT_FORMATS,
        default='console',
        help='Output format (default: console)'
    )
    report_parser.add_argument(
        '--output',
        help='Output file path (required for json and csv formats)'
    )

    return parser
