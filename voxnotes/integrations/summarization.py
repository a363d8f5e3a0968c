"""Markdown summaries from an OpenAI-compatible chat completions API."""

from __future__ import annotations

from typing import Optional

import httpx

from voxnotes.config import (
    SUMMARY_API_KEY,
    SUMMARY_API_URL,
    SUMMARY_MODEL,
    SUMMARY_TIMEOUT,
    logger,
)
from voxnotes.errors import CollaboratorError

SERVICE = "summarization"
MAX_TOKENS = 1500

SUMMARY_PROMPT = (
    "Create a concise, informative summary of the following text using Markdown. "
    "Use headings, subheadings and bulleted lists to structure it. "
    "Keep the key ideas, facts and conclusions.\n\nText: {text}"
)


def build_messages(text: str) -> list[dict[str, str]]:
    return [{"role": "user", "content": SUMMARY_PROMPT.format(text=text)}]


def summarize(text: str, *, client: Optional[httpx.Client] = None) -> str:
    if not text or not text.strip():
        raise CollaboratorError(SERVICE, "Nothing to summarize")
    if not SUMMARY_API_KEY:
        raise CollaboratorError(SERVICE, "SUMMARY_API_KEY is not configured")

    payload = {
        "model": SUMMARY_MODEL,
        "messages": build_messages(text),
        "max_tokens": MAX_TOKENS,
        "temperature": 0.3,
    }
    logger.info("Summarizing text", extra={"text_length": len(text), "model": SUMMARY_MODEL})
    owns_client = client is None
    http = client or httpx.Client(timeout=SUMMARY_TIMEOUT)
    try:
        response = http.post(
            f"{SUMMARY_API_URL.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {SUMMARY_API_KEY}"},
            json=payload,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        raise CollaboratorError(SERVICE, f"Request failed: {exc}") from exc
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Malformed response: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise CollaboratorError(SERVICE, "Response carries no choices") from exc
    if not isinstance(content, str) or not content.strip():
        raise CollaboratorError(SERVICE, "Empty summary returned")
    return content.strip()


__all__ = ["build_messages", "summarize"]
