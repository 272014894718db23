"""
Exception types raised by the job queue.
"""


class JobQueueError(Exception):
    """Base class for job queue errors."""


class TimeSpecParseError(JobQueueError, ValueError):
    """
    Raised when a job's time-of-day recurrence spec cannot be parsed.

    This is a data-integrity problem with a single job record; callers
    scheduling many jobs should exclude the offending job and carry on.
    """

    def __init__(self, spec: str):
        self.spec = spec
        super().__init__(f"Could not parse time spec: {spec!r}")
