"""
Structured logging configuration using structlog.

Log events go to stderr as JSON or console lines; stdout carries only the
run summary printed by each command. Every event is stamped with the service
name, the environment and, inside ``job_context``, the running job.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

import structlog
from structlog.typing import EventDict, FilteringBoundLogger, WrappedLogger

from .settings import settings


def _service_metadata(service_name: str, environment: str):
    def add_metadata(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("environment", environment)
        return event_dict
    return add_metadata


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog for a job run.

    Args:
        log_level: Override log level from settings
        log_format: Override log format from settings ("json" or "text")
    """
    config = settings()
    level = getattr(logging, (log_level or config.log_level).upper())
    renderer = (
        structlog.processors.JSONRenderer()
        if (log_format or config.log_format).lower() == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    # stdlib loggers (sqlalchemy, httpx) share the stream and level
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            _service_metadata(config.service_name, config.environment),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def job_context(job: str, **context: Any) -> Iterator[None]:
    """Bind ``job`` (and any extra keys) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(job=job, **context):
        yield


def log_upstream_call(
    logger: FilteringBoundLogger,
    provider: str,
    operation: str,
    target: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    **extra_context
) -> None:
    """
    Log one call to an external provider (Stripe, MailerLite).

    Args:
        logger: Logger instance
        provider: Provider name, e.g. "stripe"
        operation: SDK operation or HTTP method
        target: Resource id or URL the call was about
        status_code: HTTP status reported by the provider
        duration_ms: Call duration in milliseconds
        **extra_context: Additional context to include
    """
    context = {
        "provider": provider,
        "operation": operation,
        "target": target,
        **extra_context
    }
    if status_code is not None:
        context["status_code"] = status_code
    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if status_code is not None and status_code >= 500:
        logger.error("Upstream call failed", **context)
    elif status_code is not None and status_code >= 400:
        logger.warning("Upstream call rejected", **context)
    else:
        logger.info("Upstream call completed", **context)


def log_ledger_write(
    logger: FilteringBoundLogger,
    table: str,
    rows_affected: int,
    duration_ms: Optional[float] = None,
    **extra_context
) -> None:
    """Log a bulk UPDATE against a ledger table; zero-row updates log at debug."""
    context = {"table": table, "rows_affected": rows_affected, **extra_context}
    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if rows_affected:
        logger.info("Ledger rows updated", **context)
    else:
        logger.debug("Ledger update matched no rows", **context)


def log_job_outcomes(
    logger: FilteringBoundLogger,
    batch_id: str,
    outcomes: Mapping[str, int],
    failed: int = 0,
    duration_ms: Optional[float] = None,
) -> None:
    """
    Log the per-outcome counts of a finished batch.

    Args:
        logger: Logger instance
        batch_id: Identifier of this run, e.g. "backfill_1735725600"
        outcomes: Count per outcome name ("updated", "not_ready", ...)
        failed: Number of records that ended in error
        duration_ms: Batch duration in milliseconds
    """
    context = {"batch_id": batch_id, "failed": failed, **outcomes}
    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if failed:
        logger.warning("Batch finished with failures", **context)
    else:
        logger.info("Batch finished", **context)


def _initialize_logging():
    """Configure logging on import, outside of pytest runs."""
    if "pytest" in sys.modules:
        return
    try:
        configure_logging()
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).error("Failed to configure structured logging: %s", e)


_initialize_logging()
