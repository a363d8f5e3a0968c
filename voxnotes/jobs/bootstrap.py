"""Register built-in job handlers and wire the pipeline from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from voxnotes.config import load_pipeline_service_overrides, logger

from .ingest import AudioIngestion
from .queue import WorkQueue, build_work_queue
from .service import QueueService
from .services import PipelineServices, build_services
from .stages import default_stages
from .store import JobStore, SessionFactory
from .users import UserStore


def register_builtin_handlers(
    queue_service: QueueService,
    job_store: JobStore,
    user_store: UserStore,
    services: PipelineServices,
) -> list[str]:
    """Register the four pipeline stages on ``queue_service``."""
    registered = []
    for stage in default_stages(job_store, user_store, queue_service, services):
        queue_service.register_handler(stage.job_type, stage)
        registered.append(stage.job_type.value)
    logger.debug(
        "Built-in job handlers registered",
        extra={"handlers": registered},
    )
    return registered


@dataclass
class Pipeline:
    job_store: JobStore
    user_store: UserStore
    queue_service: QueueService
    services: PipelineServices
    ingestion: AudioIngestion


def build_pipeline(
    *,
    work_queue: Optional[WorkQueue] = None,
    session_factory: Optional[SessionFactory] = None,
    service_overrides: Optional[Mapping[str, Any]] = None,
    backend: Optional[str] = None,
) -> Pipeline:
    """Build stores, queue service, handlers and ingestion in one place."""
    job_store = JobStore(session_factory)
    user_store = UserStore(session_factory)
    queue_service = QueueService(work_queue or build_work_queue(backend), job_store)
    if service_overrides is None:
        service_overrides = load_pipeline_service_overrides()
    services = build_services(service_overrides)
    register_builtin_handlers(queue_service, job_store, user_store, services)
    ingestion = AudioIngestion(job_store, user_store, queue_service, services)
    return Pipeline(job_store, user_store, queue_service, services, ingestion)


__all__ = ["Pipeline", "build_pipeline", "register_builtin_handlers"]
