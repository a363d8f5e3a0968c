"""Chat notifications through the Telegram Bot API."""

from __future__ import annotations

from typing import Optional, Union

import httpx

from voxnotes.config import BOT_TOKEN, TELEGRAM_API_URL, logger
from voxnotes.errors import CollaboratorError

SERVICE = "telegram"
MAX_MESSAGE_LENGTH = 4096


def notify(
    destination: Union[int, str],
    message: str,
    *,
    client: Optional[httpx.Client] = None,
) -> None:
    if not BOT_TOKEN:
        raise CollaboratorError(SERVICE, "BOT_TOKEN is not configured")

    endpoint = f"{TELEGRAM_API_URL.rstrip('/')}/bot{BOT_TOKEN}/sendMessage"
    payload = {
        "chat_id": destination,
        "text": message[:MAX_MESSAGE_LENGTH],
        "parse_mode": "Markdown",
        "disable_web_page_preview": True,
    }
    owns_client = client is None
    http = client or httpx.Client(timeout=10.0)
    try:
        response = http.post(endpoint, json=payload)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        raise CollaboratorError(SERVICE, f"sendMessage failed: {exc}") from exc
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Malformed response: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    if not data.get("ok"):
        logger.warning(
            "Telegram API rejected message",
            extra={"chat_id": destination, "response": data},
        )
        raise CollaboratorError(SERVICE, f"sendMessage rejected: {data.get('description', 'unknown error')}")
    logger.info("Notification sent", extra={"chat_id": destination})


__all__ = ["notify"]
