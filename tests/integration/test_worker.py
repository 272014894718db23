"""
Integration tests for worker functionality.
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobqueue.db.models import Job, utcnow
from jobqueue.db.repository import JobRepository
from jobqueue.types.job import JobContext, JobResult
from jobqueue.worker.handlers import register_handler
from jobqueue.worker.main import Worker, default_worker_id


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    @pytest_asyncio.fixture
    async def repo(self, db_session: AsyncSession) -> JobRepository:
        """Create a repository instance."""
        return JobRepository(db_session)

    @pytest.fixture
    def make_worker(self, session_factory: async_sessionmaker[AsyncSession]):
        """Build workers sharing the test database."""
        def factory(worker_id: str = "test-worker", **kwargs) -> Worker:
            return Worker(
                worker_id=worker_id,
                sleep_delay=0.01,
                max_run_time=timedelta(hours=4),
                max_attempts=3,
                session_factory=session_factory,
                **kwargs,
            )
        return factory

    async def test_one_shot_job_lifecycle(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test complete lifecycle: enqueue -> lock -> run -> delete."""
        job = await repo.enqueue("echo", {"message": "test"})
        await db_session.commit()

        succeeded, failed = await make_worker().work_off()

        assert (succeeded, failed) == (1, 0)
        assert await repo.get_job(job.id) is None

    async def test_work_off_empty_queue(self, make_worker):
        """Test that an empty queue runs nothing."""
        assert await make_worker().work_off() == (0, 0)

    async def test_work_off_respects_num(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that work_off stops after num jobs."""
        for _ in range(4):
            await repo.enqueue("echo")
        await db_session.commit()

        assert await make_worker().work_off(num=3) == (3, 0)
        assert await make_worker().work_off() == (1, 0)

    async def test_work_off_stops_after_current_job(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that stop() ends the batch once the running job finishes."""
        worker = make_worker()

        @register_handler("stop_worker")
        async def handle_stop_worker(context: JobContext) -> JobResult:
            await worker.stop()
            return JobResult(success=True)

        for _ in range(5):
            await repo.enqueue("stop_worker")
        await db_session.commit()

        assert await worker.work_off(num=10) == (1, 0)
        assert await repo.count_locked_by(worker.worker_id) == 0

    async def test_explicit_zero_settings_are_kept(
        self, session_factory: async_sessionmaker[AsyncSession]
    ):
        """Test that explicit zero values are not replaced by defaults."""
        worker = Worker(
            worker_id="test-worker",
            read_ahead=0,
            max_attempts=0,
            session_factory=session_factory,
        )

        assert worker.read_ahead == 0
        assert worker.max_attempts == 0

    async def test_priority_order(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that the smallest priority runs first."""
        past = utcnow() - timedelta(seconds=1)
        low = await repo.enqueue("echo", priority=10, run_at=past)
        high = await repo.enqueue("echo", priority=-10, run_at=past)
        await db_session.commit()

        assert await make_worker().work_off(num=1) == (1, 0)

        assert await repo.get_job(high.id) is None
        assert await repo.get_job(low.id) is not None

    async def test_priority_bounds(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a worker only runs jobs within its priority bounds."""
        in_range = await repo.enqueue("echo", priority=3)
        out_of_range = await repo.enqueue("echo", priority=7)
        await db_session.commit()

        worker = make_worker(min_priority=0, max_priority=5)

        assert await worker.work_off() == (1, 0)
        assert await repo.get_job(in_range.id) is None
        assert await repo.get_job(out_of_range.id) is not None

    async def test_periodic_job_runs_once_per_period(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a recurring job is kept and not re-run before its period."""
        job = await repo.enqueue("echo", period=3600)
        await db_session.commit()

        worker = make_worker()
        assert await worker.work_off() == (1, 0)
        assert await worker.work_off() == (0, 0)

        stored = await repo.get_job(job.id)
        assert stored is not None
        assert stored.locked_by is None
        assert stored.last_run_at is not None

    async def test_failing_job_is_rescheduled(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a failing job is retried later, not immediately."""
        job = await repo.enqueue("failing_job")
        await db_session.commit()

        worker = make_worker()
        assert await worker.work_off() == (0, 1)
        assert await worker.work_off() == (0, 0)

        stored = await repo.get_job(job.id)
        assert stored.attempts == 1
        assert "Intentional failure" in stored.last_error
        assert stored.run_at > utcnow()
        assert stored.locked_by is None

    async def test_failing_job_fails_after_max_attempts(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a job is failed for good after max attempts."""
        job = await repo.enqueue("failing_job")
        await db_session.commit()

        worker = make_worker()
        for _ in range(3):
            assert await worker.work_off() == (0, 1)
            # Skip the backoff
            await db_session.execute(
                update(Job).where(Job.id == job.id).values(run_at=utcnow())
            )
            await db_session.commit()

        assert await worker.work_off() == (0, 0)

        stored = await repo.get_job(job.id)
        assert stored.attempts == 3
        assert stored.failed_at is not None

    async def test_unknown_job_type_fails(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a job without a handler is recorded as a failure."""
        job = await repo.enqueue("no_such_handler")
        await db_session.commit()

        assert await make_worker().work_off() == (0, 1)

        stored = await repo.get_job(job.id)
        assert "No handler registered" in stored.last_error

    async def test_malformed_periodic_job_does_not_block_others(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a corrupt recurrence spec only excludes its own job."""
        broken = await repo.enqueue("echo", period=60, priority=0)
        healthy = await repo.enqueue("echo", priority=1)
        await db_session.execute(
            update(Job).where(Job.id == broken.id).values(at="bogus")
        )
        await db_session.commit()

        assert await make_worker().work_off() == (1, 0)

        assert await repo.get_job(healthy.id) is None
        assert await repo.get_job(broken.id) is not None

    async def test_workers_do_not_run_same_job(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a job locked by one worker is skipped by another."""
        job = await repo.enqueue("echo")
        await db_session.execute(
            update(Job)
            .where(Job.id == job.id)
            .values(locked_by="worker-a", locked_at=utcnow())
        )
        await db_session.commit()

        assert await make_worker("worker-b").work_off() == (0, 0)
        assert (await repo.get_job(job.id)).locked_by == "worker-a"

    async def test_worker_resumes_own_locked_job(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a restarted worker picks up the job it held before crashing."""
        job = await repo.enqueue("echo")
        await db_session.execute(
            update(Job)
            .where(Job.id == job.id)
            .values(locked_by="worker-a", locked_at=utcnow())
        )
        await db_session.commit()

        assert await make_worker("worker-a").work_off() == (1, 0)
        assert await repo.get_job(job.id) is None

    async def test_release_held_locks(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that a worker releases only its own locks."""
        mine = await repo.enqueue("echo")
        theirs = await repo.enqueue("echo")
        now = utcnow()
        await db_session.execute(
            update(Job).where(Job.id == mine.id).values(locked_by="worker-a", locked_at=now)
        )
        await db_session.execute(
            update(Job).where(Job.id == theirs.id).values(locked_by="worker-b", locked_at=now)
        )
        await db_session.commit()

        assert await make_worker("worker-a").release_held_locks() == 1

        assert (await repo.get_job(mine.id)).locked_by is None
        assert (await repo.get_job(theirs.id)).locked_by == "worker-b"

    async def test_start_and_stop(
        self,
        repo: JobRepository,
        db_session: AsyncSession,
        make_worker,
    ):
        """Test that the polling loop drains the queue and stops cleanly."""
        jobs = [await repo.enqueue("echo") for _ in range(3)]
        await db_session.commit()

        worker = make_worker()
        task = asyncio.create_task(worker.start())

        for _ in range(200):
            if await repo.count_locked_by(worker.worker_id) == 0 and all(
                [await repo.get_job(job.id) is None for job in jobs]
            ):
                break
            await asyncio.sleep(0.01)

        await worker.stop()
        await asyncio.wait_for(task, timeout=5)

        for job in jobs:
            assert await repo.get_job(job.id) is None
        assert await repo.count_locked_by(worker.worker_id) == 0

    def test_default_worker_id(self):
        """Test the default worker identity format."""
        worker_id = default_worker_id()

        assert worker_id.startswith("host:")
        assert " pid:" in worker_id
