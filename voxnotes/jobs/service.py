"""Queue service: keeps the work queue and the job store's queue-facing statuses in step."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional, Union

from voxnotes.config import logger
from voxnotes.db.models import JobStatus, is_terminal
from voxnotes.errors import PipelineError, StoreError

from .entities import JobType, QueueJob
from .handlers import JobHandler, JobHandlerRegistry
from .queue import QueueNames, WorkQueue
from .store import JobStore

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .worker import JobWorker, WorkerConfig

DEFAULT_QUEUE_NAME = "default"


class QueueService:
    """The only component that both enqueues work and sets ``queued``/``processing``."""

    def __init__(
        self,
        work_queue: WorkQueue,
        job_store: JobStore,
        registry: Optional[JobHandlerRegistry] = None,
    ) -> None:
        self.work_queue = work_queue
        self.job_store = job_store
        self.registry = registry or JobHandlerRegistry()
        self._worker: Optional["JobWorker"] = None
        self._thread: Optional[threading.Thread] = None

    def push_job(self, queue_job: QueueJob) -> None:
        """Push to the queue named after the job type, then mark the job ``queued``.

        The item stays queued when the status write fails; the error is raised
        to the caller as ``StoreError``.
        """
        queue_name = queue_job.job_type
        try:
            self.work_queue.push(queue_name, queue_job)
        except PipelineError:
            logger.exception(
                "Failed to push queue job",
                extra={"job_id": queue_job.job_id, "queue": queue_name},
            )
            raise

        try:
            self._mark(queue_job.job_id, JobStatus.QUEUED)
        except PipelineError as exc:
            logger.error(
                "Queue job pushed but status update failed",
                extra={"job_id": queue_job.job_id, "queue": queue_name, "error": str(exc)},
            )
            if isinstance(exc, StoreError):
                raise
            raise StoreError(str(exc)) from exc

        logger.info(
            "Queue job pushed",
            extra={"job_id": queue_job.job_id, "job_type": queue_job.job_type, "queue": queue_name},
        )

    def pop_job(
        self,
        queue_names: QueueNames = DEFAULT_QUEUE_NAME,
        timeout: Optional[float] = None,
    ) -> Optional[QueueJob]:
        """Pop the next item and mark its job ``processing``; ``None`` when the queues are empty."""
        queue_job = self.work_queue.pop(queue_names, timeout=timeout)
        if queue_job is None:
            return None
        try:
            self._mark(queue_job.job_id, JobStatus.PROCESSING)
        except PipelineError as exc:
            logger.error(
                "Failed to mark job processing",
                extra={"job_id": queue_job.job_id, "error": str(exc)},
            )
        return queue_job

    def _mark(self, job_id: int, status: JobStatus) -> None:
        # Terminal jobs keep their status; a notification item follows completion.
        job = self.job_store.get_by_id(job_id)
        if is_terminal(job.status):
            logger.debug(
                "Job already terminal; queue status not applied",
                extra={"job_id": job_id, "status": job.status, "skipped": status.value},
            )
            return
        self.job_store.update_status(job_id, status)

    def register_handler(self, job_type: Union[JobType, str], handler: JobHandler) -> None:
        self.registry.register(job_type, handler)

    def consumed_queues(self) -> list[str]:
        names = [DEFAULT_QUEUE_NAME]
        names.extend(tag for tag in self.registry.available() if tag != DEFAULT_QUEUE_NAME)
        return names

    def queue_size(self, queue_name: str = DEFAULT_QUEUE_NAME) -> int:
        return self.work_queue.size(queue_name)

    def start_worker(
        self,
        stop_event: Optional[threading.Event] = None,
        config: Optional["WorkerConfig"] = None,
    ) -> "JobWorker":
        """Freeze the registry and run the worker loop on a daemon thread."""
        from .worker import JobWorker, WorkerConfig

        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Worker is already running.")

        self.registry.freeze()
        worker = JobWorker(self, self.registry, config or WorkerConfig(), stop_event=stop_event)
        thread = threading.Thread(target=worker.run, name="voxnotes-worker", daemon=True)
        self._worker = worker
        self._thread = thread
        thread.start()
        logger.info("Worker thread started", extra={"queues": worker.queues})
        return worker

    def stop_worker(self, timeout: Optional[float] = None) -> None:
        if self._worker is None:
            return
        self._worker.request_shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Worker thread did not stop in time", extra={"timeout": timeout})
                return
        self._worker = None
        self._thread = None

    def enqueue_transcription(self, job_id: int, user_id: int, audio_path: str) -> QueueJob:
        queue_job = QueueJob.transcription(job_id, user_id, audio_path)
        self.push_job(queue_job)
        return queue_job

    def enqueue_summarization(self, job_id: int, user_id: int, transcription: str) -> QueueJob:
        queue_job = QueueJob.summarization(job_id, user_id, transcription)
        self.push_job(queue_job)
        return queue_job

    def enqueue_note_sync(
        self, job_id: int, user_id: int, transcription: str, summary: str
    ) -> QueueJob:
        queue_job = QueueJob.note_sync(job_id, user_id, transcription, summary)
        self.push_job(queue_job)
        return queue_job

    def enqueue_notification(self, job_id: int, user_id: int) -> QueueJob:
        queue_job = QueueJob.notification(job_id, user_id)
        self.push_job(queue_job)
        return queue_job


__all__ = [
    "DEFAULT_QUEUE_NAME",
    "QueueService",
]
