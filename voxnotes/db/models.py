from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Float,
    DateTime,
    ForeignKey,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class JobStatus(str, Enum):
    """Lifecycle statuses for audio-processing jobs."""

    CREATED = "created"
    # Legacy initial status retained for rows written before "created" existed
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    TRANSCRIBED = "transcribed"
    SUMMARIZED = "summarized"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def is_terminal(status) -> bool:
    return JobStatus(status) in TERMINAL_STATUSES


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, index=True, nullable=False)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)

    # Note sync credentials
    notion_token = Column(String(255), nullable=True)
    notion_database_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    jobs = relationship("Job", back_populates="user")

    @property
    def has_note_sync(self) -> bool:
        return bool(self.notion_token) and bool(self.notion_database_id)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"User(id={self.id}, telegram_id={self.telegram_id})"


class Job(Base):
    """One audio-processing request and its pipeline state."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=JobStatus.CREATED.value, index=True)

    audio_file_path = Column(String(1024), nullable=False)
    file_name = Column(String(255), nullable=False, default="")
    duration = Column(Float, nullable=False, default=0.0)

    transcription = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    notion_page_id = Column(String(255), nullable=True)
    notion_database_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="jobs")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"Job(id={self.id}, status={self.status!r}, user_id={self.user_id})"


class QueueItem(Base):
    """Pending work item for the database-backed work queue."""

    __tablename__ = "queue_items"

    id = Column(Integer, primary_key=True)
    queue_name = Column(String(64), nullable=False, index=True)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
