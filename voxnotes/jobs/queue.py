"""Work queue backends: named FIFO lists with a bounded blocking pop."""

from __future__ import annotations

import datetime as dt
import time
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import redis
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from voxnotes.config import (
    QUEUE_BACKEND,
    QUEUE_KEY_PREFIX,
    QUEUE_POP_TIMEOUT,
    REDIS_URL,
    logger,
)
from voxnotes.db.database import SessionLocal, session_scope
from voxnotes.db.models import QueueItem
from voxnotes.errors import QueueTransportError

from .entities import QueueJob

QueueNames = Union[str, Sequence[str]]


def _utcnow() -> dt.datetime:
    return dt.datetime.utcnow()


def _as_names(queue_names: QueueNames) -> list[str]:
    if isinstance(queue_names, str):
        return [queue_names]
    names = [name for name in queue_names if name]
    if not names:
        raise ValueError("At least one queue name is required.")
    return names


class WorkQueue(ABC):
    """Ephemeral channel of serialized queue jobs; not a source of truth."""

    def __init__(self, pop_timeout: float = QUEUE_POP_TIMEOUT) -> None:
        self.pop_timeout = pop_timeout

    @abstractmethod
    def push(self, queue_name: str, queue_job: QueueJob) -> None:
        """Stamp ``created_at`` and append the job to ``queue_name``."""

    @abstractmethod
    def pop(self, queue_names: QueueNames, timeout: Optional[float] = None) -> Optional[QueueJob]:
        """Return the oldest item of the first non-empty queue, or ``None`` on timeout."""

    @abstractmethod
    def size(self, queue_name: str) -> int:
        """Current number of items in ``queue_name``."""

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.pop_timeout if timeout is None else max(0.0, float(timeout))


class RedisWorkQueue(WorkQueue):
    """Redis list per queue: RPUSH to append, BLPOP to take the oldest."""

    def __init__(
        self,
        client: "redis.Redis",
        *,
        key_prefix: str = QUEUE_KEY_PREFIX,
        pop_timeout: float = QUEUE_POP_TIMEOUT,
    ) -> None:
        super().__init__(pop_timeout)
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str = REDIS_URL, **kwargs) -> "RedisWorkQueue":
        return cls(redis.Redis.from_url(url), **kwargs)

    def _key(self, queue_name: str) -> str:
        return f"{self._prefix}{queue_name}"

    def push(self, queue_name: str, queue_job: QueueJob) -> None:
        queue_job.created_at = _utcnow()
        body = queue_job.to_json()
        try:
            self._client.rpush(self._key(queue_name), body)
        except redis.RedisError as exc:
            raise QueueTransportError(f"Failed to push to queue {queue_name!r}: {exc}") from exc

    def pop(self, queue_names: QueueNames, timeout: Optional[float] = None) -> Optional[QueueJob]:
        keys = [self._key(name) for name in _as_names(queue_names)]
        wait = self._timeout(timeout)
        try:
            if wait > 0:
                result = self._client.blpop(keys, timeout=wait)
            else:
                # BLPOP with timeout 0 blocks forever; take a non-blocking look instead.
                result = None
                for key in keys:
                    value = self._client.lpop(key)
                    if value is not None:
                        result = (key, value)
                        break
        except redis.RedisError as exc:
            raise QueueTransportError(f"Failed to pop from queues {keys}: {exc}") from exc

        if not result:
            return None
        _key, body = result
        return QueueJob.from_json(body)

    def size(self, queue_name: str) -> int:
        try:
            return int(self._client.llen(self._key(queue_name)))
        except redis.RedisError as exc:
            raise QueueTransportError(f"Failed to read size of {queue_name!r}: {exc}") from exc


class DatabaseWorkQueue(WorkQueue):
    """Queue rows in the relational store, polled until the pop timeout expires."""

    def __init__(
        self,
        session_factory=None,
        *,
        pop_timeout: float = QUEUE_POP_TIMEOUT,
        poll_interval: float = 0.1,
    ) -> None:
        super().__init__(pop_timeout)
        self._session_factory = session_factory or SessionLocal
        self._poll_interval = max(poll_interval, 0.01)

    def _backend_supports_skip_locked(self, session: Session) -> bool:
        return session.get_bind().dialect.name == "postgresql"

    def push(self, queue_name: str, queue_job: QueueJob) -> None:
        queue_job.created_at = _utcnow()
        body = queue_job.to_json()
        try:
            with session_scope(self._session_factory) as session:
                session.add(QueueItem(queue_name=queue_name, body=body, created_at=queue_job.created_at))
        except SQLAlchemyError as exc:
            raise QueueTransportError(f"Failed to push to queue {queue_name!r}: {exc}") from exc

    def pop(self, queue_names: QueueNames, timeout: Optional[float] = None) -> Optional[QueueJob]:
        names = _as_names(queue_names)
        deadline = time.monotonic() + self._timeout(timeout)
        while True:
            body = self._take_oldest(names)
            if body is not None:
                return QueueJob.from_json(body)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(self._poll_interval, remaining))

    def _take_oldest(self, names: list[str]) -> Optional[str]:
        try:
            with session_scope(self._session_factory) as session:
                for name in names:
                    item = self._fetch_item_for_update(session, name)
                    if item is None:
                        continue
                    body = item.body
                    session.delete(item)
                    return body
        except SQLAlchemyError as exc:
            raise QueueTransportError(f"Failed to pop from queues {names}: {exc}") from exc
        return None

    def _fetch_item_for_update(self, session: Session, queue_name: str) -> Optional[QueueItem]:
        query = (
            select(QueueItem)
            .where(QueueItem.queue_name == queue_name)
            .order_by(QueueItem.id.asc())
            .limit(1)
        )
        if self._backend_supports_skip_locked(session):
            try:
                return session.execute(query.with_for_update(skip_locked=True)).scalar_one_or_none()
            except OperationalError:
                logger.warning("FOR UPDATE SKIP LOCKED failed; falling back to non-locking query.")
        return session.execute(query).scalar_one_or_none()

    def size(self, queue_name: str) -> int:
        try:
            with session_scope(self._session_factory) as session:
                count = session.execute(
                    select(func.count(QueueItem.id)).where(QueueItem.queue_name == queue_name)
                ).scalar_one()
                return int(count)
        except SQLAlchemyError as exc:
            raise QueueTransportError(f"Failed to read size of {queue_name!r}: {exc}") from exc


def build_work_queue(backend: Optional[str] = None) -> WorkQueue:
    """Return the work queue selected by ``QUEUE_BACKEND``."""
    backend = (backend or QUEUE_BACKEND).lower()
    if backend == "redis":
        logger.info("Using redis work queue", extra={"url": REDIS_URL})
        return RedisWorkQueue.from_url(REDIS_URL)
    if backend == "database":
        logger.info("Using database work queue")
        return DatabaseWorkQueue()
    raise ValueError(f"Unknown queue backend {backend!r}; expected 'redis' or 'database'.")


__all__ = [
    "DatabaseWorkQueue",
    "QueueNames",
    "RedisWorkQueue",
    "WorkQueue",
    "build_work_queue",
]
