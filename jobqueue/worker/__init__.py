"""
Worker module.
Contains the polling worker and the job handler registry.
"""

from jobqueue.worker.main import Worker, run

__all__ = ["Worker", "run"]
