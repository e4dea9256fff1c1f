"""
Shared plumbing for the console entry points.

Each command builds its parser with ``create_parser`` and hands its work to
``run_job``, which applies log overrides, maps errors to exit codes and
writes the JSON run report when ``REPORTS_DIR`` is set.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ReconciliationError
from .log_config import configure_logging, get_logger, job_context
from .report import create_report, save_report
from .settings import Settings

logger = get_logger(__name__)

# Errors that abort a whole run
ABORTING_ERRORS = (ReconciliationError, ValueError)

JobOutcome = Tuple[Dict[str, Any], int]


def emit(lines: Sequence[str]) -> None:
    """Print console summary lines to stdout."""
    for line in lines:
        print(line)


def create_parser(prog: str, description: str, version: str, epilog: str = "") -> argparse.ArgumentParser:
    """Create command line argument parser with the shared logging options."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration"
    )

    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Override log format from configuration"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{prog} {version}"
    )

    return parser


def _save_report(
    config: Settings,
    job: str,
    result: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None,
    record_errors: int = 0,
) -> None:
    if not config.reports_dir:
        return
    report = create_report(job, result=result, errors=errors, record_errors=record_errors)
    try:
        path = save_report(report, Path(config.reports_dir))
    except OSError as e:
        logger.warning("Could not write run report", job=job, reports_dir=config.reports_dir, error=str(e))
        return
    logger.info("Run report saved", job=job, path=str(path))


def run_job(
    job: str,
    args: argparse.Namespace,
    action: Callable[[Any], JobOutcome],
    load_settings: Callable[[], Settings],
    version: str = "",
) -> int:
    """
    Run one job with shared logging, error handling and reporting.

    ``action`` receives the loaded settings, prints its own console summary
    and returns the JSON payload plus the number of records that failed.

    Returns:
        Exit code (0 for success, 1 when the run aborted or any record failed)
    """
    with job_context(job, version=version):
        # pydantic ValidationError is a ValueError
        try:
            if args.log_level or args.log_format:
                configure_logging(args.log_level, args.log_format)
            config = load_settings()
        except ValueError as e:
            logger.error("Invalid configuration", error=str(e), error_type=type(e).__name__)
            print(f"Error: invalid configuration: {e}", file=sys.stderr)
            return 1
        return _run_action(job, action, config)


def _run_action(job: str, action: Callable[[Any], JobOutcome], config: Settings) -> int:
    logger.info("Job starting", environment=config.environment)

    try:
        payload, record_errors = action(config)
    except KeyboardInterrupt:
        logger.warning("Job interrupted by user")
        return 1
    except ABORTING_ERRORS as e:
        logger.error("Job aborted", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        _save_report(config, job, errors=[str(e)])
        return 1
    except Exception as e:
        logger.error(
            "Job failed with unexpected error",
            error=str(e),
            error_type=type(e).__name__
        )
        print(f"Unexpected error: {type(e).__name__}: {e}", file=sys.stderr)
        _save_report(config, job, errors=[f"{type(e).__name__}: {e}"])
        return 1

    _save_report(config, job, result=payload, record_errors=record_errors)

    if record_errors:
        logger.warning("Job completed with record errors", record_errors=record_errors)
        return 1

    logger.info("Job completed successfully")
    return 0


def dispatch(
    prog: str,
    description: str,
    commands: Dict[str, Callable[[Optional[Sequence[str]]], int]],
    argv: Optional[Sequence[str]] = None,
) -> int:
    """Run ``<prog> <command> [args]`` by looking the command up in ``commands``."""
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("command", choices=sorted(commands), help="Job to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the job")
    args = parser.parse_args(argv)
    return commands[args.command](args.args)
