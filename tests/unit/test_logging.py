"""
Unit tests for the logging context helpers.
"""

from uuid import uuid4

import pytest
import structlog

from jobqueue.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    stringify_ids,
)


class TestLogContext:
    """Tests for worker and job log context."""

    @pytest.fixture(autouse=True)
    def clean_context(self):
        """Start and end every test with an empty context."""
        clear_context()
        yield
        clear_context()

    def test_job_context_binds_job_fields(self):
        """Test that the job id and periodic flag are bound inside the block."""
        job_id = uuid4()

        with job_context(job_id, periodic=True):
            bound = structlog.contextvars.get_contextvars()
            assert bound["job_id"] == str(job_id)
            assert bound["periodic"] is True

        assert "job_id" not in structlog.contextvars.get_contextvars()

    def test_job_context_keeps_worker_context(self):
        """Test that leaving a job block keeps the worker id bound."""
        bind_context(worker_id="worker-a")

        with job_context(uuid4(), periodic=False):
            assert structlog.contextvars.get_contextvars()["worker_id"] == "worker-a"

        assert structlog.contextvars.get_contextvars() == {"worker_id": "worker-a"}

    def test_stringify_ids(self):
        """Test that UUID values become strings and others are untouched."""
        job_id = uuid4()

        event = stringify_ids(None, "info", {"job_id": job_id, "attempts": 2})

        assert event == {"job_id": str(job_id), "attempts": 2}
