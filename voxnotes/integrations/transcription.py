"""Speech-to-text through an OpenAI-compatible ``/audio/transcriptions`` endpoint."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx

from voxnotes.config import (
    TRANSCRIPTION_API_KEY,
    TRANSCRIPTION_API_URL,
    TRANSCRIPTION_MODEL,
    TRANSCRIPTION_TIMEOUT,
    logger,
)
from voxnotes.errors import CollaboratorError

SERVICE = "transcription"


def transcribe(
    audio_path: str,
    *,
    language: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    path = Path(audio_path)
    if not path.exists():
        raise CollaboratorError(SERVICE, f"Audio file not found: {audio_path}")
    if not TRANSCRIPTION_API_KEY:
        raise CollaboratorError(SERVICE, "TRANSCRIPTION_API_KEY is not configured")

    data = {"model": TRANSCRIPTION_MODEL, "response_format": "json"}
    if language:
        data["language"] = language

    logger.info(
        "Transcribing audio",
        extra={"path": str(path), "model": TRANSCRIPTION_MODEL, "size_bytes": path.stat().st_size},
    )
    owns_client = client is None
    http = client or httpx.Client(timeout=TRANSCRIPTION_TIMEOUT)
    try:
        with path.open("rb") as handle:
            response = http.post(
                f"{TRANSCRIPTION_API_URL.rstrip('/')}/audio/transcriptions",
                headers={"Authorization": f"Bearer {TRANSCRIPTION_API_KEY}"},
                data=data,
                files={"file": (path.name, handle, "application/octet-stream")},
            )
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPError as exc:
        raise CollaboratorError(SERVICE, f"Request failed: {exc}") from exc
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Malformed response: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise CollaboratorError(SERVICE, "Response carries no transcription text")
    logger.info("Audio transcribed", extra={"path": str(path), "characters": len(text)})
    return text.strip()


__all__ = ["transcribe"]
