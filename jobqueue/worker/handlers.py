"""
Job handlers registry and implementations.

Handlers for recurring jobs run once per due period; a handler may also be
re-run after a worker crash, so handlers should be idempotent.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from jobqueue.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[JobResult]]

# Handler registry
_handlers: dict[str, JobHandler] = {}


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        job_type: The job type this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("send_digest")
        async def handle_send_digest(context: JobContext) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        logger.debug(f"Registered handler for job type: {job_type}")
        return handler
    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    """
    Get the handler for a job type.

    Args:
        job_type: The job type.

    Returns:
        The handler function or None if not found.
    """
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    """List all registered job types."""
    return list(_handlers.keys())


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(context: JobContext) -> JobResult:
    """Return the job data unchanged."""
    return JobResult(
        success=True,
        output={"echo": context.payload.get("data", {})},
    )


@register_handler("sleep")
async def handle_sleep(context: JobContext) -> JobResult:
    """
    Sleep handler for testing delays.

    Payload data should contain:
    - duration_seconds: How long to sleep
    """
    duration = context.payload.get("data", {}).get("duration_seconds", 1)
    await asyncio.sleep(duration)

    return JobResult(
        success=True,
        output={"slept_for": duration},
    )


@register_handler("failing_job")
async def handle_failing_job(context: JobContext) -> JobResult:
    """Handler that always fails, for exercising the retry policy."""
    return JobResult(
        success=False,
        error=f"Intentional failure after {context.attempts} previous attempts",
    )


async def execute_job(context: JobContext) -> JobResult:
    """
    Execute a job using the appropriate handler.

    Args:
        context: The job context.

    Returns:
        JobResult from the handler. Missing handlers and handler exceptions
        are reported as failed results.
    """
    job_type = context.payload.get("job_type")
    handler = get_handler(job_type) if job_type else None

    if handler is None:
        logger.error(
            f"No handler for job type: {job_type}",
            extra={"job_id": str(context.job_id)}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for job type: {job_type}",
        )

    try:
        return await handler(context)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": str(context.job_id)}
        )
        return JobResult(
            success=False,
            error=f"{type(e).__name__}: {e}",
        )
