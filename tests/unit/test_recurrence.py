"""
Unit tests for recurrence evaluation.
"""

from datetime import datetime, timedelta

import pytest

from jobqueue.exceptions import TimeSpecParseError
from jobqueue.scheduling.recurrence import is_due, parse_time_spec
from jobqueue.types.job import TimeSpec

T0 = datetime(2024, 5, 17, 9, 30, 0)


class TestParseTimeSpec:
    """Tests for parse_time_spec."""

    def test_single_digit_hour(self):
        """Test parsing H:MM."""
        assert parse_time_spec("9:05") == TimeSpec(hour=9, minute=5)

    def test_two_digit_hour(self):
        """Test parsing HH:MM."""
        assert parse_time_spec("23:59") == TimeSpec(hour=23, minute=59)

    def test_midnight(self):
        """Test parsing 00:00."""
        assert parse_time_spec("00:00") == TimeSpec(hour=0, minute=0)

    @pytest.mark.parametrize("spec", ["*:30", "**:30"])
    def test_wildcard_hour(self, spec: str):
        """Test parsing a wildcard hour."""
        parsed = parse_time_spec(spec)

        assert parsed == TimeSpec(hour=None, minute=30)
        assert parsed.is_wildcard

    @pytest.mark.parametrize("spec", [None, "", "   "])
    def test_blank_means_no_constraint(self, spec: str | None):
        """Test that a blank spec is no constraint rather than an error."""
        assert parse_time_spec(spec) is None

    @pytest.mark.parametrize("spec", ["25:00", "24:00", "12:60", "*:61", "**:60"])
    def test_out_of_range(self, spec: str):
        """Test that out-of-range hours and minutes are rejected."""
        with pytest.raises(TimeSpecParseError) as exc_info:
            parse_time_spec(spec)

        assert exc_info.value.spec == spec

    @pytest.mark.parametrize(
        "spec",
        ["noon", "9:5", "123:00", "***:30", "9:05pm", " 9:05", "9:05\n", "*:5", "٩:٠٥"],
    )
    def test_unrecognized_format(self, spec: str):
        """Test that anything else is rejected."""
        with pytest.raises(TimeSpecParseError):
            parse_time_spec(spec)

    def test_parse_error_is_value_error(self):
        """Test that parse errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_time_spec("bogus")


class TestIsDue:
    """Tests for is_due."""

    def test_never_run_is_due(self):
        """Test that a job that never ran is due absent other constraints."""
        assert is_due(None, T0, 60, None, None) is True

    def test_period_not_elapsed(self):
        """Test that a job is not due before its period has elapsed."""
        assert is_due(T0, T0 + timedelta(seconds=30), 60, None, None) is False

    def test_period_elapsed(self):
        """Test that a job is due once its period has elapsed."""
        assert is_due(T0, T0 + timedelta(seconds=61), 60, None, None) is True

    def test_period_exactly_elapsed(self):
        """Test that the elapsed check is inclusive."""
        assert is_due(T0, T0 + timedelta(seconds=60), 60, None, None) is True

    def test_elapsed_counts_whole_seconds(self):
        """Test that fractional seconds do not count towards the period."""
        now = T0 + timedelta(seconds=59, milliseconds=999)
        assert is_due(T0, now, 60, None, None) is False

    def test_no_period_imposes_no_elapsed_constraint(self):
        """Test that a missing period does not block the job."""
        assert is_due(T0, T0, None, None, None) is True

    @pytest.mark.parametrize("hour", [0, 9, 17, 23])
    def test_wildcard_hour_matches_any_hour(self, hour: int):
        """Test that **:30 is due at half past any hour."""
        now = datetime(2024, 5, 17, hour, 30, 0)
        assert is_due(None, now, 60, "**:30", None) is True

    def test_wildcard_hour_wrong_minute(self):
        """Test that **:30 is not due at minute 31."""
        now = datetime(2024, 5, 17, 9, 31, 0)
        assert is_due(None, now, 60, "**:30", None) is False

    def test_fixed_hour_matches(self):
        """Test that a daily spec is due at its hour and minute."""
        assert is_due(None, T0, 86400, "9:30", None) is True

    def test_fixed_hour_wrong_hour(self):
        """Test that a daily spec is not due at another hour."""
        now = datetime(2024, 5, 17, 10, 30, 0)
        assert is_due(None, now, 86400, "9:30", None) is False

    def test_time_of_day_and_period_both_required(self):
        """Test that a matching minute does not override the period."""
        last_run = T0 - timedelta(seconds=10)
        assert is_due(last_run, T0, 3600, "**:30", None) is False

    def test_stop_at_in_future(self):
        """Test that a job is due before its stop_at."""
        assert is_due(None, T0, 60, None, T0 + timedelta(days=1)) is True

    def test_stop_at_passed(self):
        """Test that a job is never due after its stop_at."""
        stop_at = T0 - timedelta(days=1)
        assert is_due(T0 - timedelta(days=2), T0, 60, "**:30", stop_at) is False

    def test_stop_at_is_exclusive(self):
        """Test that a job is not due at exactly its stop_at."""
        assert is_due(None, T0, 60, None, T0) is False

    def test_malformed_at_spec_raises(self):
        """Test that a malformed at spec surfaces instead of reading as not due."""
        with pytest.raises(TimeSpecParseError):
            is_due(None, T0, 60, "25:00", None)
