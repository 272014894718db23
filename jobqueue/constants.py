"""
Application constants.
Centralized location for all constant values used across the application.
"""

# Default values
DEFAULT_PRIORITY = 0
DEFAULT_READ_AHEAD = 5
DEFAULT_WORK_OFF_BATCH = 100

# Seconds added to attempts**4 when rescheduling a failed job
RESCHEDULE_BASE_DELAY_SECONDS = 5

# Metrics names
METRIC_LOCKS_ACQUIRED = "locks_acquired_total"
METRIC_LOCK_CONTENTION = "lock_contention_total"
METRIC_LOCKS_CLEARED = "locks_cleared_total"
METRIC_JOBS_COMPLETED = "jobs_completed_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_RECURRENCE_PARSE_ERRORS = "recurrence_parse_errors_total"

# Trace span names
SPAN_FIND_AVAILABLE = "find_available"
SPAN_LOCK_EXCLUSIVELY = "lock_exclusively"
SPAN_EXECUTE_JOB = "execute_job"
