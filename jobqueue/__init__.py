"""
Recurring Job Queue

A persistent, multi-worker job queue whose workers coordinate purely through
atomic conditional updates on the jobs table, with support for recurring jobs
("every N seconds", "daily at HH:MM", "at :MM past every hour").
"""

__version__ = "1.0.0"
