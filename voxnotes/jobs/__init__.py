"""Job queue and pipeline stages package."""

from .entities import (
    JobType,
    NoteSyncPayload,
    NotificationPayload,
    QueueJob,
    SummarizationPayload,
    TranscriptionPayload,
)
from .store import JobStore
from .users import UserStore
from .queue import (
    DatabaseWorkQueue,
    RedisWorkQueue,
    WorkQueue,
    build_work_queue,
)
from .handlers import JobHandlerRegistry
from .service import DEFAULT_QUEUE_NAME, QueueService
from .worker import JobWorker, WorkerConfig
from .services import (
    PipelineServices,
    build_services,
    default_pipeline_services,
)
from .stages import (
    NoteSyncStage,
    NotificationStage,
    PipelineStage,
    SummarizationStage,
    TranscriptionStage,
    default_stages,
)
from .ingest import AudioIngestion
from .bootstrap import Pipeline, build_pipeline, register_builtin_handlers

__all__ = [
    "AudioIngestion",
    "DEFAULT_QUEUE_NAME",
    "DatabaseWorkQueue",
    "JobHandlerRegistry",
    "JobStore",
    "JobType",
    "JobWorker",
    "NoteSyncPayload",
    "NoteSyncStage",
    "NotificationPayload",
    "NotificationStage",
    "Pipeline",
    "PipelineServices",
    "PipelineStage",
    "QueueJob",
    "QueueService",
    "RedisWorkQueue",
    "SummarizationPayload",
    "SummarizationStage",
    "TranscriptionPayload",
    "TranscriptionStage",
    "UserStore",
    "WorkQueue",
    "WorkerConfig",
    "build_pipeline",
    "build_services",
    "build_work_queue",
    "default_pipeline_services",
    "default_stages",
    "register_builtin_handlers",
]
