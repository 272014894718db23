"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class JobPayload(BaseModel):
    """
    Job payload structure.
    Contains the actual work to be executed by workers.
    """

    job_type: str
    data: dict[str, Any] = {}


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    """

    job_id: UUID
    attempts: int
    payload: dict[str, Any]
    locked_by: str
    locked_at: datetime
    period: int | None = None

    @property
    def is_periodic(self) -> bool:
        """Check if the job being executed recurs."""
        return self.period is not None


@dataclass(frozen=True)
class TimeSpec:
    """
    Parsed time-of-day constraint of a recurring job.

    hour is None for a wildcard hour ("*:MM"), meaning every hour.
    """

    hour: int | None
    minute: int

    @property
    def is_wildcard(self) -> bool:
        return self.hour is None


@dataclass(frozen=True)
class CandidateQuery:
    """
    Bounds for the structural candidate query, handed to the store in one go.

    A row matches when it has not failed, and it is either due and unlocked
    (or its lock is older than stale_before), or it is already locked by
    worker_id. min_priority/max_priority are inclusive and optional.
    """

    worker_id: str
    now: datetime
    max_run_time: timedelta
    limit: int
    min_priority: int | None = None
    max_priority: int | None = None

    @property
    def stale_before(self) -> datetime:
        """Locks acquired before this instant are considered abandoned."""
        return self.now - self.max_run_time
