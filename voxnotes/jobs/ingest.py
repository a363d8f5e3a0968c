"""Entry point for new audio uploads."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import BinaryIO, Optional, Union

from voxnotes.config import UPLOADS_DIR, logger
from voxnotes.db.models import Job, JobStatus, User
from voxnotes.errors import CollaboratorError, PipelineError

from .service import QueueService
from .services import PipelineServices
from .store import JobStore
from .users import UserStore


class AudioIngestion:
    """Creates a job for an uploaded file and queues its first stage."""

    def __init__(
        self,
        job_store: JobStore,
        user_store: UserStore,
        queue_service: QueueService,
        services: PipelineServices,
    ) -> None:
        self.job_store = job_store
        self.user_store = user_store
        self.queue_service = queue_service
        self.services = services

    def save_upload(
        self,
        telegram_id: int,
        stream: BinaryIO,
        file_name: str,
        uploads_dir: Union[str, Path, None] = None,
    ) -> str:
        """Store an uploaded file under the submitter's directory and return its path."""
        safe_name = os.path.basename(file_name or "") or "audio"
        target_dir = Path(uploads_dir or UPLOADS_DIR) / f"user_{telegram_id}"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / safe_name
        with target.open("wb") as handle:
            shutil.copyfileobj(stream, handle)
        logger.debug("Upload saved", extra={"telegram_id": telegram_id, "path": str(target)})
        return str(target)

    def submit(
        self,
        telegram_id: int,
        audio_path: str,
        file_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Job:
        user = self.user_store.get_or_create(telegram_id, username=username)
        try:
            duration = self.services.probe_duration(audio_path)
        except CollaboratorError as exc:
            logger.warning(
                "Could not read audio duration",
                extra={"path": audio_path, "error": str(exc)},
            )
            duration = 0.0

        job = self.job_store.create(
            user.id,
            audio_path,
            file_name=file_name or os.path.basename(audio_path),
            duration=duration,
        )
        try:
            self.queue_service.enqueue_transcription(job.id, user.id, audio_path)
        except PipelineError as exc:
            self.job_store.update_status(job.id, JobStatus.FAILED, str(exc) or type(exc).__name__)
            raise
        logger.info(
            "Audio submitted",
            extra={"job_id": job.id, "user_id": user.id, "telegram_id": telegram_id},
        )
        return self.job_store.get_by_id(job.id)

    def setup_note_sync(self, telegram_id: int, token: str, parent_page_id: str) -> User:
        """Create the user's notes database under ``parent_page_id`` and store its id."""
        user = self.user_store.get_by_telegram_id(telegram_id)
        database_id = self.services.create_remote_database(token, parent_page_id)
        logger.info(
            "Notes database created for user",
            extra={"user_id": user.id, "notion_database_id": database_id},
        )
        return self.user_store.configure_note_sync(telegram_id, token, database_id)

    def job_status(self, job_id: int) -> str:
        return self.job_store.get_by_id(job_id).status

    def job_result(self, job_id: int) -> Job:
        return self.job_store.get_by_id(job_id)

    def user_jobs(self, telegram_id: int, limit: int = 100) -> list[Job]:
        user = self.user_store.get_by_telegram_id(telegram_id)
        return self.job_store.get_by_user(user.id, limit=limit)


__all__ = ["AudioIngestion"]
