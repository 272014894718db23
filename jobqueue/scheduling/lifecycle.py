"""
Worker lifecycle hooks.
"""

import logging

from jobqueue.db.connection import close_db, init_db
from jobqueue.db.store import JobStore

logger = logging.getLogger(__name__)


async def clear_locks(store: JobStore, worker_id: str) -> int:
    """
    Release every lock still held by a worker.

    Called when a worker exits cleanly, so its jobs are picked up right away
    instead of after max_run_time. Safe to call when nothing is held.

    Args:
        store: The job store.
        worker_id: The worker identifier.

    Returns:
        Number of jobs released.
    """
    released = await store.release_locks(worker_id)
    if released:
        logger.info(
            f"Released {released} locked jobs",
            extra={"worker_id": worker_id}
        )
    return released


async def before_fork() -> None:
    """Drop pooled connections so a forked child does not share them."""
    await close_db()


async def after_fork() -> None:
    """Re-open the connection pool in a freshly forked process."""
    await init_db()
