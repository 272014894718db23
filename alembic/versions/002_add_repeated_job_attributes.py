"""Add repeated job attributes to jobs

Revision ID: 002
Revises: 001
Create Date: 2024-01-08 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("jobs", sa.Column("period", sa.Integer, nullable=True))
    op.add_column("jobs", sa.Column("at", sa.String(8), nullable=True))
    op.add_column("jobs", sa.Column("stop_at", sa.DateTime, nullable=True))
    op.add_column("jobs", sa.Column("last_run_at", sa.DateTime, nullable=True))


def downgrade() -> None:
    op.drop_column("jobs", "last_run_at")
    op.drop_column("jobs", "stop_at")
    op.drop_column("jobs", "at")
    op.drop_column("jobs", "period")
