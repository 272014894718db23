"""
Type definitions for the job queue.
"""

from jobqueue.types.job import (
    CandidateQuery,
    JobContext,
    JobPayload,
    JobResult,
    TimeSpec,
)

__all__ = [
    "CandidateQuery",
    "JobContext",
    "JobPayload",
    "JobResult",
    "TimeSpec",
]
