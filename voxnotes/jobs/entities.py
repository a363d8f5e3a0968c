"""Queue job definitions and their per-stage payloads."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from voxnotes.errors import PayloadError, QueueSerializationError


class JobType(str, Enum):
    TRANSCRIPTION = "transcription"
    SUMMARIZATION = "summarization"
    NOTE_SYNC = "notion_sync"
    NOTIFICATION = "notification"


def _require_text(job_type: str, data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise PayloadError(job_type, key)
    return value


@dataclass(frozen=True)
class TranscriptionPayload:
    audio_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"audio_path": self.audio_path}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TranscriptionPayload":
        return cls(audio_path=_require_text(JobType.TRANSCRIPTION.value, data, "audio_path"))


@dataclass(frozen=True)
class SummarizationPayload:
    transcription: str

    def to_dict(self) -> dict[str, Any]:
        return {"transcription": self.transcription}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SummarizationPayload":
        return cls(transcription=_require_text(JobType.SUMMARIZATION.value, data, "transcription"))


@dataclass(frozen=True)
class NoteSyncPayload:
    transcription: str
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {"transcription": self.transcription, "summary": self.summary}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NoteSyncPayload":
        job_type = JobType.NOTE_SYNC.value
        return cls(
            transcription=_require_text(job_type, data, "transcription"),
            summary=_require_text(job_type, data, "summary"),
        )


@dataclass(frozen=True)
class NotificationPayload:
    job_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"job_id": self.job_id}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NotificationPayload":
        value = data.get("job_id")
        if isinstance(value, bool) or not isinstance(value, int):
            raise PayloadError(JobType.NOTIFICATION.value, "job_id")
        return cls(job_id=value)


StagePayload = Union[
    TranscriptionPayload,
    SummarizationPayload,
    NoteSyncPayload,
    NotificationPayload,
]

PAYLOAD_TYPES: dict[str, type] = {
    JobType.TRANSCRIPTION.value: TranscriptionPayload,
    JobType.SUMMARIZATION.value: SummarizationPayload,
    JobType.NOTE_SYNC.value: NoteSyncPayload,
    JobType.NOTIFICATION.value: NotificationPayload,
}


def _job_type_value(job_type: Union[JobType, str]) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


@dataclass
class QueueJob:
    """Unit of work carried through the work queue.

    ``payload`` is the typed variant matching ``job_type``. Items whose tag has
    no known payload type keep the raw mapping so the worker can report them
    as unhandled instead of failing to decode.
    """

    job_id: int
    user_id: int
    job_type: str
    payload: Union[StagePayload, dict[str, Any]] = field(default_factory=dict)
    created_at: Optional[dt.datetime] = None

    def __post_init__(self) -> None:
        self.job_type = _job_type_value(self.job_type)

    @classmethod
    def transcription(cls, job_id: int, user_id: int, audio_path: str) -> "QueueJob":
        return cls(job_id, user_id, JobType.TRANSCRIPTION.value, TranscriptionPayload(audio_path))

    @classmethod
    def summarization(cls, job_id: int, user_id: int, transcription: str) -> "QueueJob":
        return cls(job_id, user_id, JobType.SUMMARIZATION.value, SummarizationPayload(transcription))

    @classmethod
    def note_sync(cls, job_id: int, user_id: int, transcription: str, summary: str) -> "QueueJob":
        return cls(job_id, user_id, JobType.NOTE_SYNC.value, NoteSyncPayload(transcription, summary))

    @classmethod
    def notification(cls, job_id: int, user_id: int) -> "QueueJob":
        return cls(job_id, user_id, JobType.NOTIFICATION.value, NotificationPayload(job_id))

    def to_dict(self) -> dict[str, Any]:
        payload = self.payload.to_dict() if hasattr(self.payload, "to_dict") else dict(self.payload)
        return {
            "job_id": self.job_id,
            "user_id": self.user_id,
            "job_type": self.job_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "payload": payload,
        }

    def to_json(self) -> str:
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise QueueSerializationError(f"Cannot serialize queue job {self.job_id}: {exc}") from exc

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "QueueJob":
        """Decode a queue job; raises ``QueueSerializationError`` on a malformed envelope."""
        try:
            job_id = int(data["job_id"])
            user_id = int(data.get("user_id") or 0)
            job_type = str(data["job_type"])
        except (KeyError, TypeError, ValueError) as exc:
            raise QueueSerializationError(f"Malformed queue job envelope: {exc}") from exc

        created_at = None
        raw_created = data.get("created_at")
        if raw_created:
            try:
                created_at = dt.datetime.fromisoformat(str(raw_created))
            except ValueError:
                created_at = None

        raw_payload = data.get("payload")
        payload: Union[StagePayload, dict[str, Any]]
        if not isinstance(raw_payload, Mapping):
            payload = {}
        else:
            payload = dict(raw_payload)
            payload_type = PAYLOAD_TYPES.get(job_type)
            if payload_type is not None:
                try:
                    payload = payload_type.from_mapping(raw_payload)
                except PayloadError:
                    # Left raw; the stage handler reports it via payload_as().
                    pass

        return cls(job_id=job_id, user_id=user_id, job_type=job_type, payload=payload, created_at=created_at)

    def payload_as(self, payload_type: type) -> Any:
        """Return the payload as ``payload_type`` or raise ``PayloadError``."""
        if isinstance(self.payload, payload_type):
            return self.payload
        if isinstance(self.payload, Mapping):
            return payload_type.from_mapping(self.payload)
        raise PayloadError(
            self.job_type,
            "payload",
            f"{self.job_type} job carries {type(self.payload).__name__}, expected {payload_type.__name__}",
        )

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "QueueJob":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise QueueSerializationError(f"Cannot decode queue job: {exc}") from exc
        if not isinstance(data, Mapping):
            raise QueueSerializationError("Queue job must be a JSON object")
        return cls.from_mapping(data)


__all__ = [
    "JobType",
    "NoteSyncPayload",
    "NotificationPayload",
    "PAYLOAD_TYPES",
    "QueueJob",
    "StagePayload",
    "SummarizationPayload",
    "TranscriptionPayload",
]
