"""
Worker process for executing jobs.

The worker polls for candidate jobs, claims one with an atomic conditional
update, executes it, and records the outcome. Several workers can poll the
same table concurrently; none of them coordinates with the others except
through the jobs table itself.
"""

import asyncio
import logging
import os
import signal
import socket
import time
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobqueue.config import get_settings
from jobqueue.constants import (
    DEFAULT_WORK_OFF_BATCH,
    SPAN_EXECUTE_JOB,
    SPAN_FIND_AVAILABLE,
    SPAN_LOCK_EXCLUSIVELY,
)
from jobqueue.db import close_db, get_engine, get_session_context, init_db
from jobqueue.db.models import Job
from jobqueue.db.repository import JobRepository
from jobqueue.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from jobqueue.observability.metrics import get_metrics, start_metrics_server
from jobqueue.observability.tracing import get_tracer, instrument_sqlalchemy, setup_tracing
from jobqueue.scheduling import clear_locks, find_available, lock_exclusively
from jobqueue.scheduling.locker import MaxRunTime, resolve_max_run_time
from jobqueue.types.job import JobContext
from jobqueue.worker.handlers import execute_job

logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    """Identity of this process, unique across hosts."""
    return f"host:{socket.gethostname()} pid:{os.getpid()}"


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Lock acquisition by conditional update, with stale-lock takeover
    - Recurring jobs stay in the table and run again when next due
    - Polynomial backoff for failed one-shot jobs
    - Releases its locks on graceful shutdown (SIGTERM/SIGINT)

    max_run_time must be larger than the longest job, otherwise another
    worker will consider a running job's lock abandoned and take it over.
    """

    def __init__(
        self,
        worker_id: str | None = None,
        read_ahead: int | None = None,
        sleep_delay: float | None = None,
        max_run_time: MaxRunTime | None = None,
        min_priority: int | None = None,
        max_priority: int | None = None,
        max_attempts: int | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        """
        Initialize the worker.

        Args:
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            read_ahead: Number of candidates fetched per poll.
            sleep_delay: Seconds between polls when the queue is empty.
            max_run_time: Age after which another worker's lock is stale.
            min_priority: Only run jobs with priority >= this.
            max_priority: Only run jobs with priority <= this.
            max_attempts: Failures after which a job is failed for good.
            session_factory: Session factory. Defaults to the global one.
        """
        settings = get_settings()

        self.worker_id = worker_id or settings.worker_name or default_worker_id()
        self.read_ahead = (
            read_ahead if read_ahead is not None else settings.worker_read_ahead
        )
        self.sleep_delay = (
            sleep_delay if sleep_delay is not None else settings.worker_sleep_delay_seconds
        )
        self.max_run_time: timedelta = resolve_max_run_time(max_run_time)
        self.min_priority = min_priority if min_priority is not None else settings.min_priority
        self.max_priority = max_priority if max_priority is not None else settings.max_priority
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.max_attempts
        )

        self._session_factory = session_factory
        self._running = False
        self._stop_requested = False
        self._metrics = get_metrics()

    async def start(self) -> None:
        """Run until stop() is called, then release held locks."""
        bind_context(worker_id=self.worker_id)
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "max_run_time": self.max_run_time.total_seconds(),
            }
        )

        self._running = True
        self._stop_requested = False
        try:
            while self._running:
                try:
                    succeeded, failed = await self.work_off()
                except Exception as e:
                    logger.exception(f"Error in worker loop: {e}")
                    succeeded = failed = 0

                if succeeded or failed:
                    logger.info(
                        f"{succeeded + failed} jobs processed",
                        extra={"succeeded": succeeded, "failed": failed}
                    )
                else:
                    await asyncio.sleep(self.sleep_delay)
        finally:
            await self.release_held_locks()
            logger.info("Worker stopped", extra={"worker_id": self.worker_id})
            clear_context()

    async def stop(self) -> None:
        """Stop the worker after the job in progress."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False
        self._stop_requested = True

    async def work_off(self, num: int = DEFAULT_WORK_OFF_BATCH) -> tuple[int, int]:
        """
        Run up to num jobs, stopping early when none is available or stop()
        has been called.

        Args:
            num: Maximum number of jobs to run.

        Returns:
            Tuple of (succeeded, failed).
        """
        succeeded = failed = 0

        for _ in range(num):
            result = await self.reserve_and_run_one_job()
            if result is None:
                break
            if result:
                succeeded += 1
            else:
                failed += 1
            if self._stop_requested:
                break

        return succeeded, failed

    async def reserve_and_run_one_job(self) -> bool | None:
        """
        Claim the first winnable candidate and run it.

        Returns:
            None if no job could be claimed, otherwise whether it succeeded.
        """
        job = await self._reserve_job()
        if job is None:
            return None
        return await self.run(job)

    async def _reserve_job(self) -> Job | None:
        tracer = get_tracer()

        async with get_session_context(self._session_factory) as session:
            repo = JobRepository(session)

            with tracer.start_as_current_span(SPAN_FIND_AVAILABLE):
                candidates = await find_available(
                    repo,
                    self.worker_id,
                    limit=self.read_ahead,
                    max_run_time=self.max_run_time,
                    min_priority=self.min_priority,
                    max_priority=self.max_priority,
                )

            for job in candidates:
                with tracer.start_as_current_span(SPAN_LOCK_EXCLUSIVELY) as span:
                    span.set_attribute("job_id", str(job.id))
                    locked = await lock_exclusively(
                        repo, job, self.max_run_time, self.worker_id
                    )
                    span.set_attribute("locked", locked)

                self._metrics.record_lock_attempt(self.worker_id, locked)
                if locked:
                    return job

        return None

    async def run(self, job: Job) -> bool:
        """
        Execute a locked job and record the outcome.

        Args:
            job: A job this worker holds the lock on.

        Returns:
            True if the handler succeeded.
        """
        with job_context(job.id, job.is_periodic):
            return await self._run(job)

    async def _run(self, job: Job) -> bool:
        start_time = time.monotonic()
        context = JobContext(
            job_id=job.id,
            attempts=job.attempts,
            payload=job.payload,
            locked_by=self.worker_id,
            locked_at=job.locked_at,
            period=job.period,
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", str(job.id))
            span.set_attribute("periodic", job.is_periodic)
            result = await execute_job(context)

        duration = time.monotonic() - start_time

        async with get_session_context(self._session_factory) as session:
            repo = JobRepository(session)
            if result.success:
                await repo.complete_job(job, self.worker_id)
            else:
                await repo.fail_job(
                    job,
                    self.worker_id,
                    error=result.error or "Unknown error",
                    max_attempts=self.max_attempts,
                )

        status = "succeeded" if result.success else "failed"
        self._metrics.record_job_completed(status, job.is_periodic, duration)
        logger.info(
            f"Job {status}",
            extra={"duration": f"{duration:.2f}s"}
        )
        return result.success

    async def release_held_locks(self) -> int:
        """
        Release every lock this worker holds.

        Returns:
            Number of jobs released.
        """
        async with get_session_context(self._session_factory) as session:
            released = await clear_locks(JobRepository(session), self.worker_id)

        self._metrics.record_locks_cleared(self.worker_id, released)
        return released


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_tracing()
    start_metrics_server()
    await init_db()
    instrument_sqlalchemy(get_engine().sync_engine)

    worker = Worker()

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
