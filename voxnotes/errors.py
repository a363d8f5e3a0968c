"""Exception hierarchy shared by the pipeline modules."""

from __future__ import annotations

from typing import Optional


class PipelineError(RuntimeError):
    """Base class for pipeline failures."""


class StoreError(PipelineError):
    """Raised when the job or user store cannot complete an operation."""


class JobNotFoundError(StoreError, LookupError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class UserNotFoundError(StoreError, LookupError):
    def __init__(self, *, user_id: Optional[int] = None, telegram_id: Optional[int] = None) -> None:
        ref = f"id={user_id}" if user_id is not None else f"telegram_id={telegram_id}"
        super().__init__(f"User {ref} not found")
        self.user_id = user_id
        self.telegram_id = telegram_id


class InvalidUserError(StoreError, ValueError):
    """Raised when a job references an owner that does not exist."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"Cannot create job for unknown user {user_id}")
        self.user_id = user_id


class QueueTransportError(PipelineError):
    """Broker unavailable or rejected the operation."""


class QueueSerializationError(QueueTransportError):
    """Queue item could not be encoded or decoded."""


class CollaboratorError(PipelineError):
    """An external service call failed or returned a malformed response."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class PayloadError(PipelineError, ValueError):
    """Queue job payload is missing a field required by its stage."""

    def __init__(self, job_type: str, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{job_type} payload requires '{field}'")
        self.job_type = job_type
        self.field = field


class UnknownJobTypeError(KeyError):
    """Raised when no handler is registered for the requested job type."""

    def __init__(self, job_type: str) -> None:
        super().__init__(job_type)
        self.job_type = job_type


class RegistryFrozenError(RuntimeError):
    """Raised when handlers are changed after the worker has started."""


__all__ = [
    "CollaboratorError",
    "InvalidUserError",
    "JobNotFoundError",
    "PayloadError",
    "PipelineError",
    "QueueSerializationError",
    "QueueTransportError",
    "RegistryFrozenError",
    "StoreError",
    "UnknownJobTypeError",
    "UserNotFoundError",
]
