"""
Command-line interface for dataset reconciliation.

Available commands:
- run: Execute one-time reconciliation
- schedule: Set up periodic reconciliation jobs
- report: Render a saved report
"""

import sys

from datarecon.utils.logging import setup_logging
from datarecon.utils.metrics import start_metrics_server
from datarecon.utils.tracing import initialize_tracing, shutdown_tracing

from .commands import EXIT_FATAL, build_config, cmd_report, cmd_run, cmd_schedule
from .parser import create_parser

COMMANDS = {
    'run': cmd_run,
    'schedule': cmd_schedule,
    'report': cmd_report,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the datarecon CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        sys.exit(EXIT_FATAL)

    setup_logging(args.log_level, log_file=args.log_file, json_format=args.log_json)
    if args.metrics_port:
        start_metrics_server(args.metrics_port)
    if args.otlp_endpoint:
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        code = COMMANDS[args.command](args)
    finally:
        shutdown_tracing()
    sys.exit(code)


__all__ = [
    'main',
    'build_config',
    'cmd_run',
    'cmd_schedule',
    'cmd_report',
    'create_parser',
]


if __name__ == '__main__':
    main()
