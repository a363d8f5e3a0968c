"""Registry mapping job-type tags to stage handlers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Optional, Union

from voxnotes.config import logger
from voxnotes.errors import RegistryFrozenError, UnknownJobTypeError

from .entities import JobType, QueueJob

JobHandler = Callable[[QueueJob], Any]


def _tag(job_type: Union[JobType, str]) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


@dataclass
class JobHandlerRegistry:
    """Holds mapping of job types to callables.

    Registration happens at startup; ``freeze()`` is called when the worker
    starts, after which the mapping is read-only.
    """

    _handlers: dict[str, JobHandler] = field(default_factory=dict)
    _frozen: bool = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, job_type: Union[JobType, str], handler: JobHandler) -> None:
        """Register a handler; a second registration for the same tag replaces the first."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register handler for '{_tag(job_type)}' after the worker has started."
            )
        tag = _tag(job_type)
        if tag in self._handlers:
            logger.warning("Handler replaced", extra={"job_type": tag})
        self._handlers[tag] = handler

    def unregister(self, job_type: Union[JobType, str]) -> None:
        if self._frozen:
            raise RegistryFrozenError("Cannot unregister handlers after the worker has started.")
        self._handlers.pop(_tag(job_type), None)

    def freeze(self) -> None:
        self._frozen = True

    def dispatch(self, queue_job: QueueJob) -> Any:
        handler = self._handlers.get(queue_job.job_type)
        if not handler:
            raise UnknownJobTypeError(queue_job.job_type)
        return handler(queue_job)

    def get(self, job_type: Union[JobType, str]) -> Optional[JobHandler]:
        return self._handlers.get(_tag(job_type))

    def available(self) -> Iterable[str]:
        return tuple(sorted(self._handlers.keys()))

    def snapshot(self) -> Mapping[str, JobHandler]:
        return MappingProxyType(dict(self._handlers))


__all__ = [
    "JobHandler",
    "JobHandlerRegistry",
]
