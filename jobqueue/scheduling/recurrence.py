"""
Recurrence evaluation for periodic jobs.

A recurring job carries three parameters:
- period: minimum number of seconds between two runs
- at: optional time-of-day constraint, "HH:MM" (daily) or "*:MM" (hourly)
- stop_at: optional instant after which the job is never due again

Everything here is pure; callers pass the current time in.
"""

import re
from datetime import datetime

from jobqueue.exceptions import TimeSpecParseError
from jobqueue.types.job import TimeSpec

_HOUR_MINUTE = re.compile(r"(\d{1,2}):(\d\d)", re.ASCII)
_ANY_HOUR_MINUTE = re.compile(r"\*{1,2}:(\d\d)", re.ASCII)


def parse_time_spec(spec: str | None) -> TimeSpec | None:
    """
    Parse a time-of-day constraint.

    Args:
        spec: "H:MM", "HH:MM", "*:MM" or "**:MM". Blank means no constraint.

    Returns:
        The parsed TimeSpec (hour is None for a wildcard hour), or None when
        there is no constraint.

    Raises:
        TimeSpecParseError: If the time-of-day string is malformed or out of range.
    """
    if spec is None or not spec.strip():
        return None

    match = _HOUR_MINUTE.fullmatch(spec)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour >= 24 or minute >= 60:
            raise TimeSpecParseError(spec)
        return TimeSpec(hour=hour, minute=minute)

    match = _ANY_HOUR_MINUTE.fullmatch(spec)
    if match:
        minute = int(match.group(1))
        if minute >= 60:
            raise TimeSpecParseError(spec)
        return TimeSpec(hour=None, minute=minute)

    raise TimeSpecParseError(spec)


def is_due(
    last_run_at: datetime | None,
    now: datetime,
    period: int | None,
    at_spec: str | None,
    stop_at: datetime | None,
) -> bool:
    """
    Decide whether a recurring job should run now.

    The job is due when enough whole seconds have elapsed since it last
    started, the time-of-day constraint (if any) matches now to the minute,
    and stop_at (if any) is still in the future.

    Raises:
        TimeSpecParseError: If at_spec is malformed.
    """
    time_spec = parse_time_spec(at_spec)

    elapsed_ready = (
        last_run_at is None
        or period is None
        or int((now - last_run_at).total_seconds()) >= period
    )
    time_ready = time_spec is None or (
        (time_spec.is_wildcard or now.hour == time_spec.hour)
        and now.minute == time_spec.minute
    )
    stop_ready = stop_at is None or stop_at > now

    return elapsed_ready and time_ready and stop_ready
