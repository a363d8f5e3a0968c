"""Database package exports for voxnotes."""

from .database import engine, SessionLocal, init_database, session_scope
from .models import Base, Job, JobStatus, QueueItem, User, TERMINAL_STATUSES, is_terminal


def init_db() -> None:
    init_database()


__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "session_scope",
    "init_db",
    "init_database",
    "Job",
    "JobStatus",
    "QueueItem",
    "User",
    "TERMINAL_STATUSES",
    "is_terminal",
]
