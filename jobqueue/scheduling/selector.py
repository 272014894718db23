"""
Candidate selection.

Selection happens in two phases: a cheap structural query in the store, then
the precise recurrence check in-process for periodic jobs, since the
recurrence rule does not translate into a single efficient query.
"""

import logging

from jobqueue.constants import DEFAULT_READ_AHEAD
from jobqueue.db.models import Job
from jobqueue.db.store import JobStore
from jobqueue.exceptions import TimeSpecParseError
from jobqueue.observability.metrics import get_metrics
from jobqueue.scheduling.locker import MaxRunTime, resolve_max_run_time
from jobqueue.scheduling.recurrence import is_due
from jobqueue.types.job import CandidateQuery

logger = logging.getLogger(__name__)


async def find_available(
    store: JobStore,
    worker_id: str,
    limit: int = DEFAULT_READ_AHEAD,
    max_run_time: MaxRunTime | None = None,
    min_priority: int | None = None,
    max_priority: int | None = None,
) -> list[Job]:
    """
    Find a few candidate jobs to run.

    More than one is returned because some will be locked by other workers
    before this one gets to them.

    Args:
        store: The job store.
        worker_id: The worker identifier.
        limit: Maximum number of candidates.
        max_run_time: Age after which another worker's lock is stale.
        min_priority: Inclusive lower priority bound.
        max_priority: Inclusive upper priority bound.

    Returns:
        Candidates ordered by priority then run_at, periodic jobs that are
        not due removed.
    """
    now = await store.now()
    query = CandidateQuery(
        worker_id=worker_id,
        now=now,
        max_run_time=resolve_max_run_time(max_run_time),
        limit=limit,
        min_priority=min_priority,
        max_priority=max_priority,
    )

    candidates = await store.find_candidates(query)

    available = []
    for job in candidates:
        if not job.is_periodic:
            available.append(job)
            continue

        try:
            due = is_due(job.last_run_at, now, job.period, job.at, job.stop_at)
        except TimeSpecParseError as e:
            logger.error(
                "Skipping job with malformed recurrence spec",
                extra={"job_id": str(job.id), "at": e.spec}
            )
            get_metrics().record_recurrence_parse_error()
            continue

        if due:
            available.append(job)

    return available
