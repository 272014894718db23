"""
Database module.
Contains database connection, models, and storage implementations.
"""

from jobqueue.db.connection import (
    close_db,
    create_session_factory,
    get_engine,
    get_session_context,
    init_db,
)
from jobqueue.db.models import Base, Job, utcnow

__all__ = [
    "get_session_context",
    "create_session_factory",
    "get_engine",
    "init_db",
    "close_db",
    "Job",
    "Base",
    "utcnow",
]
