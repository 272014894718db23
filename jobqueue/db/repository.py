"""
Job repository for database operations.
Implements the JobStore port on top of an async SQLAlchemy session.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobqueue.constants import DEFAULT_PRIORITY, RESCHEDULE_BASE_DELAY_SECONDS
from jobqueue.db.models import Job, utcnow
from jobqueue.scheduling.recurrence import parse_time_spec
from jobqueue.types.job import CandidateQuery, JobPayload

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for job database operations.

    Every lock transition is a single UPDATE ... WHERE whose predicate
    re-checks the row state, so the row count tells the caller whether it
    won. No SELECT ... FOR UPDATE is ever held between polling and locking.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def now(self) -> datetime:
        """
        Get the current time on the database clock basis (naive UTC).

        This does not ask the database for its time, so all workers must
        have synchronized clocks.
        """
        return utcnow()

    async def enqueue(
        self,
        job_type: str,
        data: dict[str, Any] | None = None,
        priority: int = DEFAULT_PRIORITY,
        run_at: datetime | None = None,
        period: int | None = None,
        at: str | None = None,
        stop_at: datetime | None = None,
    ) -> Job:
        """
        Create a new job.

        Args:
            job_type: Handler name the worker dispatches on.
            data: Handler input.
            priority: Smaller values run first.
            run_at: Earliest run time. Defaults to now.
            period: Seconds between runs for a recurring job.
            at: Time-of-day constraint ("HH:MM" or "*:MM"), read as UTC since
                it is matched against utcnow(), not local time.
            stop_at: Time after which a recurring job is never due.

        Returns:
            The persisted Job.

        Raises:
            TimeSpecParseError: If at is malformed.
        """
        parse_time_spec(at)

        payload = JobPayload(job_type=job_type, data=data or {})
        job = Job(
            payload=payload.model_dump(),
            priority=priority,
            attempts=0,
            run_at=run_at or await self.now(),
            period=period,
            at=at,
            stop_at=stop_at,
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Enqueued job",
            extra={"job_id": str(job.id), "job_type": job_type, "period": period}
        )
        return job

    async def get_job(self, job_id: UUID) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job UUID.

        Returns:
            The Job or None if not found.
        """
        stmt = (
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_candidates(self, query: CandidateQuery) -> Sequence[Job]:
        """
        Select jobs structurally eligible for locking.

        A worker always sees jobs it already holds, so it can resume them
        after a crash-restart cycle.

        Args:
            query: Candidate bounds.

        Returns:
            Up to query.limit jobs ordered by priority, then run_at.
        """
        filters = [
            Job.failed_at.is_(None),
            or_(
                and_(
                    Job.run_at <= query.now,
                    or_(
                        Job.locked_at.is_(None),
                        Job.locked_at < query.stale_before,
                    ),
                ),
                Job.locked_by == query.worker_id,
            ),
        ]
        if query.min_priority is not None:
            filters.append(Job.priority >= query.min_priority)
        if query.max_priority is not None:
            filters.append(Job.priority <= query.max_priority)

        stmt = (
            select(Job)
            .where(and_(*filters))
            .order_by(Job.priority.asc(), Job.run_at.asc())
            .limit(query.limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def claim(
        self,
        job_id: UUID,
        worker_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> int:
        """
        Lock a job for a worker that does not hold it yet.

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier.
            now: Lock time.
            stale_before: Locks older than this may be stolen.

        Returns:
            Number of rows modified (1 if the lock was won).
        """
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    or_(Job.locked_at.is_(None), Job.locked_at < stale_before),
                    Job.run_at <= now,
                )
            )
            .values(
                locked_at=now,
                locked_by=worker_id,
                last_run_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def refresh_claim(self, job_id: UUID, worker_id: str, now: datetime) -> int:
        """
        Refresh the lock on a job the worker already holds.

        Args:
            job_id: The job UUID.
            worker_id: The worker identifier (must match locked_by).
            now: New lock time.

        Returns:
            Number of rows modified.
        """
        stmt = (
            update(Job)
            .where(and_(Job.id == job_id, Job.locked_by == worker_id))
            .values(locked_at=now, last_run_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def release_locks(self, worker_id: str) -> int:
        """
        Release every lock held by a worker.

        Args:
            worker_id: The worker identifier.

        Returns:
            Number of jobs released.
        """
        stmt = (
            update(Job)
            .where(Job.locked_by == worker_id)
            .values(locked_by=None, locked_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def complete_job(self, job: Job, worker_id: str) -> bool:
        """
        Record a successful run.

        One-shot jobs are deleted. Recurring jobs are unlocked and kept, with
        their failure counter reset.

        Args:
            job: The job that ran.
            worker_id: The worker identifier (must still hold the lock).

        Returns:
            True if the row was updated or deleted.
        """
        if job.is_periodic:
            stmt = (
                update(Job)
                .where(and_(Job.id == job.id, Job.locked_by == worker_id))
                .values(
                    locked_by=None,
                    locked_at=None,
                    attempts=0,
                    last_error=None,
                    updated_at=await self.now(),
                )
                .execution_options(synchronize_session=False)
            )
        else:
            stmt = (
                delete(Job)
                .where(and_(Job.id == job.id, Job.locked_by == worker_id))
                .execution_options(synchronize_session=False)
            )

        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "Worker no longer holds job lock on completion",
                extra={"job_id": str(job.id), "worker_id": worker_id}
            )
            return False

        logger.info("Job completed", extra={"job_id": str(job.id)})
        return True

    async def fail_job(
        self,
        job: Job,
        worker_id: str,
        error: str,
        max_attempts: int,
    ) -> bool:
        """
        Record a failed run. Either reschedule or mark permanently failed.

        One-shot jobs are retried after attempts**4 + 5 seconds. Recurring
        jobs keep their run_at and simply wait for their next due time.

        Args:
            job: The job that ran.
            worker_id: The worker identifier (must still hold the lock).
            error: Error message.
            max_attempts: Attempts after which the job is failed for good.

        Returns:
            True if the row was updated.
        """
        now = await self.now()
        attempts = job.attempts + 1
        values: dict[str, Any] = {
            "attempts": attempts,
            "last_error": error,
            "locked_by": None,
            "locked_at": None,
            "updated_at": now,
        }

        if attempts >= max_attempts:
            values["failed_at"] = now
            logger.warning(
                f"Job failed permanently after {attempts} attempts",
                extra={"job_id": str(job.id), "error": error}
            )
        elif not job.is_periodic:
            delay = attempts ** 4 + RESCHEDULE_BASE_DELAY_SECONDS
            values["run_at"] = now + timedelta(seconds=delay)
            logger.info(
                f"Job rescheduled in {delay}s",
                extra={"job_id": str(job.id), "attempts": attempts}
            )

        stmt = (
            update(Job)
            .where(and_(Job.id == job.id, Job.locked_by == worker_id))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "Worker no longer holds job lock on failure",
                extra={"job_id": str(job.id), "worker_id": worker_id}
            )
            return False
        return True

    async def count_locked_by(self, worker_id: str) -> int:
        """
        Get the number of jobs currently locked by a worker.

        Args:
            worker_id: The worker identifier.

        Returns:
            Number of locked jobs.
        """
        stmt = select(func.count()).select_from(Job).where(Job.locked_by == worker_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0
