"""
Scheduling core.
Decides which jobs are due, which a worker may claim, and claims them.
"""

from jobqueue.scheduling.lifecycle import after_fork, before_fork, clear_locks
from jobqueue.scheduling.locker import lock_exclusively
from jobqueue.scheduling.recurrence import is_due, parse_time_spec
from jobqueue.scheduling.selector import find_available

__all__ = [
    "find_available",
    "lock_exclusively",
    "clear_locks",
    "before_fork",
    "after_fork",
    "is_due",
    "parse_time_spec",
]
