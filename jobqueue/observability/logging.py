"""
Structured logging setup using structlog.

Modules log through standard library loggers; setup_logging() routes those
records through structlog so the worker id and the current job id bound
here appear on every line a worker emits.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator
from uuid import UUID

import structlog
from opentelemetry import trace

from jobqueue.config import get_settings


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add OpenTelemetry trace context to log records.

    Args:
        logger: The logger instance.
        method_name: The method name being called.
        event_dict: The event dictionary.

    Returns:
        The event dictionary with trace context added.
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def stringify_ids(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Render UUID job ids as plain strings so the JSON renderer accepts them."""
    for key, value in event_dict.items():
        if isinstance(value, UUID):
            event_dict[key] = str(value)
    return event_dict


def setup_logging() -> None:
    """
    Configure structured logging for the worker process.

    Sets up structlog with JSON or console output based on configuration.
    Records from standard library loggers go through the same processors.
    """
    settings = get_settings()

    # Determine log level
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Shared processors for structlog and stdlib records
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,  # worker_id, job_id
        add_trace_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
        stringify_ids,
    ]

    # Configure output format
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Candidate polling issues a query per poll
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent log messages.

    Args:
        **kwargs: Key-value pairs to add to log context.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_context(job_id: UUID, periodic: bool) -> Iterator[None]:
    """
    Bind the job being run for the duration of the block.

    The worker-level context bound by bind_context() is left untouched.
    """
    with structlog.contextvars.bound_contextvars(job_id=str(job_id), periodic=periodic):
        yield
