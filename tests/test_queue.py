"""Tests for the work queue backends and queue job encoding."""

import json

import pytest
import redis

from voxnotes.errors import PayloadError, QueueSerializationError, QueueTransportError
from voxnotes.jobs.entities import (
    JobType,
    NotificationPayload,
    QueueJob,
    SummarizationPayload,
    TranscriptionPayload,
)
from voxnotes.jobs.queue import DatabaseWorkQueue, RedisWorkQueue, build_work_queue


class FakeRedis:
    """In-memory stand-in for the list commands used by RedisWorkQueue."""

    def __init__(self):
        self.lists = {}
        self.blpop_calls = []

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def lpop(self, key):
        items = self.lists.get(key) or []
        return items.pop(0) if items else None

    def blpop(self, keys, timeout=0):
        self.blpop_calls.append((list(keys), timeout))
        for key in keys:
            value = self.lpop(key)
            if value is not None:
                return key, value
        return None

    def llen(self, key):
        return len(self.lists.get(key) or [])


class BrokenRedis(FakeRedis):
    def rpush(self, key, value):
        raise redis.ConnectionError("connection refused")

    def blpop(self, keys, timeout=0):
        raise redis.ConnectionError("connection refused")


@pytest.fixture(params=["database", "redis"])
def any_queue(request, session_factory):
    if request.param == "database":
        return DatabaseWorkQueue(session_factory, pop_timeout=0)
    return RedisWorkQueue(FakeRedis(), pop_timeout=0)


def test_pop_preserves_push_order(any_queue):
    for job_id in range(1, 6):
        any_queue.push("transcription", QueueJob.transcription(job_id, 42, f"{job_id}.ogg"))

    popped = [any_queue.pop("transcription").job_id for _ in range(5)]

    assert popped == [1, 2, 3, 4, 5]
    assert any_queue.size("transcription") == 0


def test_pop_empty_queue_returns_none(any_queue):
    assert any_queue.pop("transcription") is None
    assert any_queue.pop(["default", "transcription"], timeout=0) is None


def test_pop_respects_queue_name_order(any_queue):
    any_queue.push("summarization", QueueJob.summarization(1, 42, "text"))
    any_queue.push("transcription", QueueJob.transcription(2, 42, "a.ogg"))
    any_queue.push("transcription", QueueJob.transcription(3, 42, "b.ogg"))

    names = ["transcription", "summarization"]
    assert [any_queue.pop(names).job_id for _ in range(3)] == [2, 3, 1]


def test_push_stamps_created_at_and_round_trips_payload(any_queue):
    queue_job = QueueJob.note_sync(5, 42, "hello world", "greeting")

    any_queue.push("notion_sync", queue_job)
    popped = any_queue.pop("notion_sync")

    assert queue_job.created_at is not None
    assert popped.created_at == queue_job.created_at
    assert popped.job_type == JobType.NOTE_SYNC.value
    assert popped.payload.summary == "greeting"
    assert any_queue.size("notion_sync") == 0


def test_size_counts_only_named_queue(any_queue):
    any_queue.push("transcription", QueueJob.transcription(1, 42, "a.ogg"))
    any_queue.push("transcription", QueueJob.transcription(2, 42, "b.ogg"))
    any_queue.push("notification", QueueJob.notification(1, 42))

    assert any_queue.size("transcription") == 2
    assert any_queue.size("notification") == 1
    assert any_queue.size("default") == 0


def test_database_queue_waits_until_timeout(session_factory):
    queue = DatabaseWorkQueue(session_factory, pop_timeout=0.05, poll_interval=0.01)
    assert queue.pop("default") is None


def test_redis_queue_uses_blocking_pop_with_prefixed_keys():
    client = FakeRedis()
    queue = RedisWorkQueue(client, key_prefix="test:", pop_timeout=1)
    queue.push("transcription", QueueJob.transcription(1, 42, "a.ogg"))

    popped = queue.pop(["default", "transcription"])

    assert popped.job_id == 1
    assert client.blpop_calls == [(["test:default", "test:transcription"], 1)]


def test_redis_errors_become_transport_errors():
    queue = RedisWorkQueue(BrokenRedis(), pop_timeout=1)
    with pytest.raises(QueueTransportError):
        queue.push("default", QueueJob.transcription(1, 42, "a.ogg"))
    with pytest.raises(QueueTransportError):
        queue.pop("default")


def test_malformed_item_raises_serialization_error():
    client = FakeRedis()
    client.rpush("voxnotes:queue:default", b"not json")
    client.rpush("voxnotes:queue:default", json.dumps({"job_type": "transcription"}))
    queue = RedisWorkQueue(client, pop_timeout=0)

    with pytest.raises(QueueSerializationError):
        queue.pop("default")
    with pytest.raises(QueueSerializationError):
        queue.pop("default")


def test_build_work_queue_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_work_queue("kafka")


def test_payload_variants_match_job_types():
    assert isinstance(QueueJob.transcription(1, 2, "a.ogg").payload, TranscriptionPayload)
    assert isinstance(QueueJob.summarization(1, 2, "x").payload, SummarizationPayload)
    assert QueueJob.notification(9, 2).payload == NotificationPayload(job_id=9)


def test_invalid_payload_is_kept_raw_and_reported_by_payload_as():
    raw = json.dumps({"job_id": 1, "user_id": 2, "job_type": "transcription", "payload": {"text": "x"}})

    queue_job = QueueJob.from_json(raw)

    assert queue_job.payload == {"text": "x"}
    with pytest.raises(PayloadError) as excinfo:
        queue_job.payload_as(TranscriptionPayload)
    assert excinfo.value.field == "audio_path"


def test_payload_as_rejects_other_variant():
    queue_job = QueueJob.summarization(1, 2, "text")
    with pytest.raises(PayloadError):
        queue_job.payload_as(TranscriptionPayload)


def test_unknown_job_type_decodes_with_raw_payload():
    raw = json.dumps({"job_id": 1, "user_id": 2, "job_type": "translate", "payload": {"lang": "en"}})
    queue_job = QueueJob.from_json(raw)
    assert queue_job.job_type == "translate"
    assert queue_job.payload == {"lang": "en"}
