"""
SQLAlchemy database models.
Defines the Job table.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobqueue.constants import DEFAULT_PRIORITY


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the clock basis for every row."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing a unit of work in the queue.

    This table is the only shared mutable state between workers. Locks are
    taken and released exclusively through conditional UPDATE statements.

    Key invariants:
    - locked_at and locked_by are either both set or both null
    - a job with failed_at set is never scheduled again
    - a job with period set is recurring; it is additionally gated by its
      at/stop_at recurrence parameters
    """

    __tablename__ = "jobs"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
        nullable=False,
    )

    # Ordering: smaller value runs first
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
    )

    # Job payload
    payload: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=dict,
    )

    # Retry tracking
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Scheduling
    run_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    # Lock management
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    locked_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    # Recurrence
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    period: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    # Time of day in UTC, matched against the same naive-UTC clock as run_at
    at: Mapped[str | None] = mapped_column(
        String(8),
        nullable=True,
    )
    stop_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        # Index for candidate polling order
        Index("ix_jobs_priority_run_at", "priority", "run_at"),
    )

    @property
    def is_periodic(self) -> bool:
        """Check if the job recurs."""
        return self.period is not None

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, priority={self.priority}, run_at={self.run_at}, "
            f"locked_by={self.locked_by}, period={self.period}, at={self.at})"
        )
