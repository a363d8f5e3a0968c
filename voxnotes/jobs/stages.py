"""Pipeline stage handlers: transcription, summarization, note sync and notification."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Union

from voxnotes.config import logger
from voxnotes.db.models import JobStatus, is_terminal
from voxnotes.errors import CollaboratorError, PipelineError

from . import messages
from .entities import (
    JobType,
    NoteSyncPayload,
    NotificationPayload,
    QueueJob,
    SummarizationPayload,
    TranscriptionPayload,
)
from .services import PipelineServices
from .store import JobStore
from .users import UserStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .service import QueueService


class PipelineStage(ABC):
    """Base class for a stage handler registered under one job type."""

    job_type: JobType
    name: str = "stage"
    job_store: JobStore
    # Stages that must still run once the job is finished set this to False.
    skip_finished_jobs: bool = True

    def __call__(self, queue_job: QueueJob) -> Any:
        if self.skip_finished_jobs:
            job = self.job_store.get_by_id(queue_job.job_id)
            if is_terminal(job.status):
                logger.warning(
                    "Skipping stage for finished job",
                    extra={"job_id": job.id, "job_type": queue_job.job_type, "status": job.status},
                )
                return None
        return self.run(queue_job)

    @abstractmethod
    def run(self, queue_job: QueueJob) -> Any:
        """Process one queue job."""


class TranscriptionStage(PipelineStage):
    job_type = JobType.TRANSCRIPTION
    name = "transcription"

    def __init__(self, job_store: JobStore, queue_service: "QueueService", services: PipelineServices) -> None:
        self.job_store = job_store
        self.queue_service = queue_service
        self.services = services

    def run(self, queue_job: QueueJob) -> str:
        payload = queue_job.payload_as(TranscriptionPayload)
        prepared_path = self.services.transcode(payload.audio_path)
        text = self.services.transcribe(prepared_path)
        if not text:
            raise CollaboratorError("transcription", "Transcriber returned no text.")

        self.job_store.set_transcription(queue_job.job_id, text)
        self.job_store.update_status(queue_job.job_id, JobStatus.TRANSCRIBED)
        logger.info(
            "Transcription stored",
            extra={"job_id": queue_job.job_id, "characters": len(text)},
        )
        self.queue_service.enqueue_summarization(queue_job.job_id, queue_job.user_id, text)
        return text


class SummarizationStage(PipelineStage):
    job_type = JobType.SUMMARIZATION
    name = "summarization"

    def __init__(self, job_store: JobStore, queue_service: "QueueService", services: PipelineServices) -> None:
        self.job_store = job_store
        self.queue_service = queue_service
        self.services = services

    def run(self, queue_job: QueueJob) -> str:
        payload = queue_job.payload_as(SummarizationPayload)
        summary = self.services.summarize(payload.transcription)
        if not summary:
            raise CollaboratorError("summarization", "Summarizer returned no text.")

        self.job_store.set_summary(queue_job.job_id, summary)
        self.job_store.update_status(queue_job.job_id, JobStatus.SUMMARIZED)
        self.queue_service.enqueue_note_sync(
            queue_job.job_id,
            queue_job.user_id,
            payload.transcription,
            summary,
        )
        return summary


class NoteSyncStage(PipelineStage):
    """Saves the result to the owner's note database when credentials are configured."""

    job_type = JobType.NOTE_SYNC
    name = "note_sync"

    def __init__(
        self,
        job_store: JobStore,
        user_store: UserStore,
        queue_service: "QueueService",
        services: PipelineServices,
        *,
        notify_on_completion: bool = True,
    ) -> None:
        self.job_store = job_store
        self.user_store = user_store
        self.queue_service = queue_service
        self.services = services
        self.notify_on_completion = notify_on_completion

    def run(self, queue_job: QueueJob) -> str:
        payload = queue_job.payload_as(NoteSyncPayload)
        user = self.user_store.get_by_id(queue_job.user_id)

        page_id = ""
        if not user.has_note_sync:
            logger.info(
                "Note sync not configured; completing job",
                extra={"job_id": queue_job.job_id, "user_id": user.id},
            )
        else:
            page_id = self.services.create_remote_note(
                user.notion_token,
                user.notion_database_id,
                messages.note_title(),
                messages.note_body(payload.summary, payload.transcription),
            )
            if not page_id:
                raise CollaboratorError("notion", "Remote note was created without an id.")
            self.job_store.set_sync_identifiers(queue_job.job_id, page_id, user.notion_database_id)

        self.job_store.update_status(queue_job.job_id, JobStatus.COMPLETED)
        if self.notify_on_completion:
            self._enqueue_notification(queue_job)
        return page_id

    def _enqueue_notification(self, queue_job: QueueJob) -> None:
        try:
            self.queue_service.enqueue_notification(queue_job.job_id, queue_job.user_id)
        except PipelineError:
            # The job is already completed; a lost notification does not change that.
            logger.exception(
                "Failed to enqueue completion notification",
                extra={"job_id": queue_job.job_id},
            )


class NotificationStage(PipelineStage):
    job_type = JobType.NOTIFICATION
    name = "notification"
    skip_finished_jobs = False

    def __init__(self, job_store: JobStore, user_store: UserStore, services: PipelineServices) -> None:
        self.job_store = job_store
        self.user_store = user_store
        self.services = services

    def run(self, queue_job: QueueJob) -> tuple[Union[int, str], str]:
        payload = queue_job.payload_as(NotificationPayload)
        job = self.job_store.get_by_id(payload.job_id)
        user = self.user_store.get_by_id(job.user_id)
        message = messages.format_completion_message(job)
        destination = user.telegram_id
        self.services.notify(destination, message)
        logger.info(
            "Completion notification sent",
            extra={"job_id": job.id, "user_id": user.id, "telegram_id": destination},
        )
        return destination, message


def default_stages(
    job_store: JobStore,
    user_store: UserStore,
    queue_service: "QueueService",
    services: PipelineServices,
) -> list[PipelineStage]:
    return [
        TranscriptionStage(job_store, queue_service, services),
        SummarizationStage(job_store, queue_service, services),
        NoteSyncStage(job_store, user_store, queue_service, services),
        NotificationStage(job_store, user_store, services),
    ]


__all__ = [
    "NoteSyncStage",
    "NotificationStage",
    "PipelineStage",
    "SummarizationStage",
    "TranscriptionStage",
    "default_stages",
]
