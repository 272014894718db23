"""
Storage port used by the scheduling core.

The selector, locker and lifecycle hooks only ever talk to a JobStore, so the
same coordination logic runs against PostgreSQL, SQLite, or an in-memory
store in tests.
"""

from datetime import datetime
from typing import Protocol, Sequence
from uuid import UUID

from jobqueue.db.models import Job
from jobqueue.types.job import CandidateQuery


class JobStore(Protocol):
    """
    Persistent job storage.

    Every write method is a single conditional update: the match check and the
    write must be atomic with respect to other callers touching the same row,
    and the method returns the number of rows it actually modified.
    """

    async def now(self) -> datetime:
        """Authoritative current time (naive UTC)."""
        ...

    async def find_candidates(self, query: CandidateQuery) -> Sequence[Job]:
        """Rows matching the structural candidate filter, ordered by priority, run_at."""
        ...

    async def claim(
        self,
        job_id: UUID,
        worker_id: str,
        now: datetime,
        stale_before: datetime,
    ) -> int:
        """
        Lock a job not held by worker_id.

        Sets locked_at, locked_by and last_run_at where the row is still due
        (run_at <= now) and is unlocked or locked before stale_before.
        """
        ...

    async def refresh_claim(self, job_id: UUID, worker_id: str, now: datetime) -> int:
        """Refresh locked_at and last_run_at on a job already held by worker_id."""
        ...

    async def release_locks(self, worker_id: str) -> int:
        """Clear locked_by and locked_at on every row held by worker_id."""
        ...
