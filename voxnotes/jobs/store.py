"""Durable job records and their narrow update operations."""

from __future__ import annotations

import contextlib
import datetime as dt
from typing import Callable, Iterator, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from voxnotes.config import logger
from voxnotes.db.database import SessionLocal
from voxnotes.db.models import Job, JobStatus, User, is_terminal
from voxnotes.errors import InvalidUserError, JobNotFoundError, StoreError

SessionFactory = Callable[[], Session]


def _utcnow() -> dt.datetime:
    return dt.datetime.utcnow()


@contextlib.contextmanager
def store_session(session_factory: SessionFactory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except (StoreError, LookupError):
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreError(f"Store operation failed: {exc}") from exc
    finally:
        session.close()


class JobStore:
    """Source of truth for job status and stage results.

    Every mutation goes through one of the update methods below; callers never
    assign fields on the returned ``Job`` objects.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def _session_scope(self):
        return store_session(self._session_factory)

    def create(
        self,
        user_id: int,
        audio_file_path: str,
        *,
        file_name: str = "",
        duration: float = 0.0,
    ) -> Job:
        now = _utcnow()
        with self._session_scope() as session:
            if session.get(User, user_id) is None:
                raise InvalidUserError(user_id)
            job = Job(
                user_id=user_id,
                status=JobStatus.CREATED.value,
                audio_file_path=audio_file_path,
                file_name=file_name or "",
                duration=float(duration or 0.0),
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            session.flush()
            session.refresh(job)
            session.expunge(job)
        logger.info("Job created", extra={"job_id": job.id, "user_id": user_id})
        return job

    def get_by_id(self, job_id: int) -> Job:
        with self._session_scope() as session:
            job = session.get(Job, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            session.expunge(job)
            return job

    def get_by_user(self, user_id: int, limit: int = 100, offset: int = 0) -> list[Job]:
        query = (
            select(Job)
            .where(Job.user_id == user_id)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .limit(limit)
            .offset(offset)
        )
        with self._session_scope() as session:
            jobs = list(session.execute(query).scalars())
            for job in jobs:
                session.expunge(job)
            return jobs

    def update_status(
        self,
        job_id: int,
        status: Union[JobStatus, str],
        error_message: str = "",
    ) -> None:
        """Overwrite the status; no transition check is made here."""
        status = JobStatus(status)
        now = _utcnow()
        with self._session_scope() as session:
            job = self._load(session, job_id)
            job.status = status.value
            job.updated_at = now
            job.completed_at = now if is_terminal(status) else None
            job.error_message = (error_message or None) if status is JobStatus.FAILED else None
        log = logger.warning if status is JobStatus.FAILED else logger.debug
        log(
            "Job status updated",
            extra={"job_id": job_id, "status": status.value, "error": error_message or None},
        )

    def set_transcription(self, job_id: int, text: str) -> None:
        with self._session_scope() as session:
            job = self._load(session, job_id)
            job.transcription = text
            job.updated_at = _utcnow()

    def set_summary(self, job_id: int, text: str) -> None:
        with self._session_scope() as session:
            job = self._load(session, job_id)
            job.summary = text
            job.updated_at = _utcnow()

    def set_sync_identifiers(self, job_id: int, page_id: str, database_id: str) -> None:
        with self._session_scope() as session:
            job = self._load(session, job_id)
            job.notion_page_id = page_id
            job.notion_database_id = database_id
            job.updated_at = _utcnow()

    @staticmethod
    def _load(session: Session, job_id: int) -> Job:
        job = session.get(Job, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


__all__ = ["JobStore", "SessionFactory", "store_session"]
