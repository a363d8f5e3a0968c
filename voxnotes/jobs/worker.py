"""Single-consumer worker loop draining the work queue."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from voxnotes.config import WORKER_IDLE_SLEEP, logger
from voxnotes.db.models import JobStatus, is_terminal
from voxnotes.errors import PipelineError

from .entities import QueueJob
from .handlers import JobHandlerRegistry

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .service import QueueService


@dataclass(frozen=True)
class WorkerConfig:
    queues: Optional[Sequence[str]] = None
    idle_sleep: float = WORKER_IDLE_SLEEP
    run_once: bool = False
    max_jobs: Optional[int] = None


class JobWorker:
    """Pulls one queue job at a time and hands it to the registered stage handler.

    Shutdown is observed between jobs only; a running handler is never
    interrupted.
    """

    def __init__(
        self,
        queue_service: "QueueService",
        registry: JobHandlerRegistry,
        config: Optional[WorkerConfig] = None,
        *,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.queue_service = queue_service
        self.registry = registry
        self.config = config or WorkerConfig()
        self._stop = stop_event or threading.Event()
        self._current_job_id: Optional[int] = None
        self.processed_jobs = 0
        self.failed_jobs = 0
        self.dropped_jobs = 0
        self._total_job_time = 0.0
        self._start_monotonic = time.monotonic()

    @property
    def queues(self) -> list[str]:
        if self.config.queues:
            return list(self.config.queues)
        return self.queue_service.consumed_queues()

    @property
    def current_job_id(self) -> Optional[int]:
        return self._current_job_id

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def request_shutdown(self) -> None:
        self._stop.set()

    def run(self) -> None:
        queues = self.queues
        logger.info(
            "Worker starting",
            extra={
                "queues": queues,
                "idle_sleep": self.config.idle_sleep,
                "handlers": list(self.registry.available()),
            },
        )
        self._start_monotonic = time.monotonic()
        try:
            while not self._stop.is_set():
                try:
                    queue_job = self.queue_service.pop_job(queues)
                except PipelineError as exc:
                    logger.error("Failed to pop from work queue", extra={"error": str(exc)})
                    self._idle()
                    continue

                if queue_job is None:
                    self._idle()
                    continue

                self.process(queue_job)

                if self.config.run_once:
                    logger.info("Processed single job; stopping as requested.")
                    break
                handled = self.processed_jobs + self.failed_jobs
                if self.config.max_jobs and handled >= self.config.max_jobs:
                    logger.info("Max jobs reached; stopping worker", extra={"max_jobs": self.config.max_jobs})
                    break
        finally:
            self._log_summary()

    def process(self, queue_job: QueueJob) -> bool:
        """Run the handler for one queue job; returns ``True`` on success."""
        handler = self.registry.get(queue_job.job_type)
        if handler is None:
            self.dropped_jobs += 1
            logger.error(
                "No handler registered; queue job dropped",
                extra={
                    "job_id": queue_job.job_id,
                    "job_type": queue_job.job_type,
                    "handlers": ", ".join(self.registry.available()) or "none",
                },
            )
            return False

        self._current_job_id = queue_job.job_id
        logger.info(
            "Processing job",
            extra={"job_id": queue_job.job_id, "job_type": queue_job.job_type, "user_id": queue_job.user_id},
        )
        started = time.monotonic()
        try:
            handler(queue_job)
        except Exception as exc:  # noqa: BLE001 - any handler failure marks the job failed
            duration = time.monotonic() - started
            self.failed_jobs += 1
            self._total_job_time += duration
            logger.exception(
                "Job failed",
                extra={"job_id": queue_job.job_id, "job_type": queue_job.job_type},
            )
            self._mark_failed(queue_job, exc)
            return False
        finally:
            self._current_job_id = None

        duration = time.monotonic() - started
        self.processed_jobs += 1
        self._total_job_time += duration
        logger.info(
            "Job processed",
            extra={"job_id": queue_job.job_id, "duration_seconds": round(duration, 3)},
        )
        return True

    def _mark_failed(self, queue_job: QueueJob, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        job_store = self.queue_service.job_store
        try:
            job = job_store.get_by_id(queue_job.job_id)
            if is_terminal(job.status):
                # A notification failing after completion leaves the job completed.
                logger.warning(
                    "Handler failed for a finished job; status kept",
                    extra={"job_id": queue_job.job_id, "status": job.status, "error": message},
                )
                return
            job_store.update_status(queue_job.job_id, JobStatus.FAILED, message)
        except PipelineError:
            logger.exception(
                "Failed to record job failure",
                extra={"job_id": queue_job.job_id},
            )

    def _idle(self) -> None:
        self._stop.wait(max(self.config.idle_sleep, 0.0))

    def _log_summary(self) -> None:
        runtime = time.monotonic() - self._start_monotonic
        total_jobs = self.processed_jobs + self.failed_jobs
        avg_duration = self._total_job_time / total_jobs if total_jobs else 0.0
        logger.info(
            "Worker summary",
            extra={
                "processed_jobs": self.processed_jobs,
                "failed_jobs": self.failed_jobs,
                "dropped_jobs": self.dropped_jobs,
                "total_jobs": total_jobs,
                "runtime_seconds": round(runtime, 3),
                "average_duration_seconds": round(avg_duration, 3),
            },
        )


__all__ = ["JobWorker", "WorkerConfig"]
