"""
In-memory JobStore.

Holds rows in a dict and applies each conditional update under an
asyncio.Lock, which gives the same per-row atomicity a database does for
coroutines sharing one event loop. Callers always receive detached copies,
never the stored rows themselves.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Sequence
from uuid import UUID, uuid4

from jobqueue.constants import DEFAULT_PRIORITY
from jobqueue.db.models import Job, utcnow
from jobqueue.types.job import CandidateQuery

_COLUMNS = [column.key for column in Job.__table__.columns]


def _copy(job: Job) -> Job:
    return Job(**{key: getattr(job, key) for key in _COLUMNS})


class InMemoryJobStore:
    """JobStore kept in process memory, for tests and single-process use."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._rows: dict[UUID, Job] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def now(self) -> datetime:
        return self._clock()

    def add(self, **fields: Any) -> Job:
        """Insert a row, filling defaults the way the jobs table does."""
        now = self._clock()
        values: dict[str, Any] = {
            "id": uuid4(),
            "priority": DEFAULT_PRIORITY,
            "payload": {},
            "attempts": 0,
            "run_at": now,
            "created_at": now,
            "updated_at": now,
        }
        values.update(fields)
        job = Job(**{key: values.get(key) for key in _COLUMNS})
        self._rows[job.id] = job
        return _copy(job)

    def get(self, job_id: UUID) -> Job | None:
        row = self._rows.get(job_id)
        return _copy(row) if row is not None else None

    async def find_candidates(self, query: CandidateQuery) -> Sequence[Job]:
        async with self._lock:
            matches = [
                row for row in self._rows.values()
                if self._is_candidate(row, query)
            ]
        matches.sort(key=lambda row: (row.priority, row.run_at))
        return [_copy(row) for row in matches[:query.limit]]

    async def claim(
        self,
        job_id: UUID,
        worker_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> int:
        # Yield first so concurrent callers genuinely interleave.
        await asyncio.sleep(0)
        async with self._lock:
            row = self._rows.get(job_id)
            if row is None:
                return 0
            if row.locked_at is not None and row.locked_at >= stale_before:
                return 0
            if row.run_at > now:
                return 0
            row.locked_at = now
            row.locked_by = worker_id
            row.last_run_at = now
            row.updated_at = now
            return 1

    async def refresh_claim(self, job_id: UUID, worker_id: str, now: datetime) -> int:
        await asyncio.sleep(0)
        async with self._lock:
            row = self._rows.get(job_id)
            if row is None or row.locked_by != worker_id:
                return 0
            row.locked_at = now
            row.last_run_at = now
            row.updated_at = now
            return 1

    async def release_locks(self, worker_id: str) -> int:
        async with self._lock:
            released = 0
            for row in self._rows.values():
                if row.locked_by == worker_id:
                    row.locked_by = None
                    row.locked_at = None
                    released += 1
            return released

    @staticmethod
    def _is_candidate(row: Job, query: CandidateQuery) -> bool:
        if row.failed_at is not None:
            return False
        if query.min_priority is not None and row.priority < query.min_priority:
            return False
        if query.max_priority is not None and row.priority > query.max_priority:
            return False
        if row.locked_by == query.worker_id:
            return True
        unlocked = row.locked_at is None or row.locked_at < query.stale_before
        return row.run_at <= query.now and unlocked
