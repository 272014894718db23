"""
Exclusive job locking.

Mutual exclusion between workers rests entirely on the store's row-level
atomicity: each lock attempt is one conditional update that re-checks the
lock's freshness at write time, so when several workers race for the same
row at most one update matches. Losing the race is a normal outcome and is
reported as False, never raised.
"""

import logging
from datetime import timedelta

from sqlalchemy.orm.attributes import set_committed_value

from jobqueue.config import get_settings
from jobqueue.db.models import Job
from jobqueue.db.store import JobStore

logger = logging.getLogger(__name__)

MaxRunTime = int | float | timedelta


def resolve_max_run_time(max_run_time: MaxRunTime | None) -> timedelta:
    """Normalise a max run time given in seconds, falling back to settings."""
    if max_run_time is None:
        return timedelta(seconds=get_settings().max_run_time_seconds)
    if isinstance(max_run_time, timedelta):
        return max_run_time
    return timedelta(seconds=max_run_time)


async def lock_exclusively(
    store: JobStore,
    job: Job,
    max_run_time: MaxRunTime | None,
    worker_id: str,
) -> bool:
    """
    Lock a job for a worker.

    If the worker does not own the job yet, the lock is taken only where the
    job is due and either unlocked or locked longer ago than max_run_time.
    If it already owns the job (e.g. it crashed and restarted under the same
    name), the lock is simply refreshed.

    Args:
        store: The job store.
        job: The candidate job. Updated in place on success.
        max_run_time: Age after which another worker's lock is stale.
        worker_id: The worker identifier.

    Returns:
        True if the worker now holds the lock, False otherwise.
    """
    now = await store.now()

    if job.locked_by != worker_id:
        stale_before = now - resolve_max_run_time(max_run_time)
        affected = await store.claim(job.id, worker_id, now, stale_before)
    else:
        affected = await store.refresh_claim(job.id, worker_id, now)

    if affected != 1:
        logger.debug(
            "Lost lock race",
            extra={"job_id": str(job.id), "worker_id": worker_id}
        )
        return False

    # Mirror the row without marking the instance dirty; the conditional
    # update above is the only write.
    set_committed_value(job, "locked_at", now)
    set_committed_value(job, "locked_by", worker_id)
    set_committed_value(job, "last_run_at", now)

    logger.debug(
        "Acquired job lock",
        extra={"job_id": str(job.id), "worker_id": worker_id}
    )
    return True
