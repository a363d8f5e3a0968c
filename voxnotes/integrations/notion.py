"""Notion pages for finished transcriptions."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

import httpx

from voxnotes.config import NOTION_API_URL, NOTION_TIMEOUT, NOTION_VERSION, logger
from voxnotes.errors import CollaboratorError

SERVICE = "notion"
MAX_TEXT_LENGTH = 2000
MAX_BLOCKS_PER_REQUEST = 100

_PREFIXES = (
    ("### ", "heading_3"),
    ("## ", "heading_2"),
    ("# ", "heading_1"),
    ("- ", "bulleted_list_item"),
    ("* ", "bulleted_list_item"),
    ("> ", "quote"),
    ("```", "code"),
    ("1. ", "numbered_list_item"),
    ("1) ", "numbered_list_item"),
)


def _rich_text(text: str) -> list[dict[str, Any]]:
    chunks = [text[i:i + MAX_TEXT_LENGTH] for i in range(0, len(text), MAX_TEXT_LENGTH)] or [""]
    return [{"type": "text", "text": {"content": chunk}} for chunk in chunks]


def _block(block_type: str, lines: list[str]) -> dict[str, Any]:
    body: dict[str, Any] = {"rich_text": _rich_text("\n".join(lines))}
    if block_type == "code":
        body["language"] = "plain text"
    return {"object": "block", "type": block_type, block_type: body}


def _classify(line: str) -> tuple[str, str]:
    for prefix, block_type in _PREFIXES:
        if line.startswith(prefix):
            return block_type, line[len(prefix):]
    return "paragraph", line


def markdown_to_blocks(markdown: str) -> list[dict[str, Any]]:
    """Group consecutive lines of the same kind into Notion blocks; blank lines split blocks."""
    blocks: list[dict[str, Any]] = []
    current: list[str] = []
    current_type = ""

    def flush() -> None:
        nonlocal current, current_type
        if current:
            blocks.append(_block(current_type, current))
        current = []
        current_type = ""

    for raw_line in markdown.splitlines():
        if not raw_line.strip():
            flush()
            continue
        block_type, text = _classify(raw_line)
        if current_type and current_type != block_type:
            flush()
        current_type = block_type
        current.append(text)
    flush()
    return blocks


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Notion-Version": NOTION_VERSION,
        "Content-Type": "application/json",
    }


DEFAULT_DATABASE_TITLE = "Audio transcriptions"

_STATUS_OPTIONS = (
    ("Created", "blue"),
    ("Processing", "yellow"),
    ("Transcribed", "green"),
    ("Summarized", "purple"),
    ("Completed", "green"),
    ("Failed", "red"),
)


def _post(http: httpx.Client, url: str, token: str, payload: dict[str, Any]) -> str:
    response = http.post(url, headers=_headers(token), json=payload)
    response.raise_for_status()
    object_id = response.json().get("id")
    if not object_id:
        raise CollaboratorError(SERVICE, "Response carries no id")
    return str(object_id)


def create_database(
    token: str,
    parent_page_id: str,
    title: str = DEFAULT_DATABASE_TITLE,
    *,
    client: Optional[httpx.Client] = None,
) -> str:
    """Create the notes database under ``parent_page_id`` and return its id.

    The integration behind ``token`` must have access to the parent page.
    """
    if not token or not parent_page_id:
        raise CollaboratorError(SERVICE, "Integration token and parent page id are required")

    payload = {
        "parent": {"type": "page_id", "page_id": parent_page_id},
        "title": _rich_text(title),
        "properties": {
            "Name": {"title": {}},
            "Description": {"rich_text": {}},
            "Date": {"date": {}},
            "Status": {
                "select": {
                    "options": [{"name": name, "color": color} for name, color in _STATUS_OPTIONS],
                },
            },
        },
    }
    logger.info("Creating Notion database", extra={"parent_page_id": parent_page_id, "title": title})
    owns_client = client is None
    http = client or httpx.Client(timeout=NOTION_TIMEOUT)
    try:
        database_id = _post(http, f"{NOTION_API_URL.rstrip('/')}/databases", token, payload)
    except httpx.HTTPError as exc:
        raise CollaboratorError(SERVICE, f"Request failed: {exc}") from exc
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Malformed response: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    logger.info("Notion database created", extra={"database_id": database_id})
    return database_id


def create_remote_note(
    token: str,
    database_id: str,
    title: str,
    body: str,
    *,
    client: Optional[httpx.Client] = None,
) -> str:
    """Create a page in ``database_id`` and return its id."""
    if not token or not database_id:
        raise CollaboratorError(SERVICE, "Integration token and database id are required")

    blocks = markdown_to_blocks(body)
    payload = {
        "parent": {"database_id": database_id},
        "properties": {
            "Name": {"title": _rich_text(title)},
            "Date": {"date": {"start": dt.date.today().isoformat()}},
        },
        "children": blocks[:MAX_BLOCKS_PER_REQUEST],
    }
    base_url = NOTION_API_URL.rstrip("/")
    logger.info(
        "Creating Notion page",
        extra={"database_id": database_id, "title": title, "blocks": len(blocks)},
    )
    owns_client = client is None
    http = client or httpx.Client(timeout=NOTION_TIMEOUT)
    try:
        page_id = _post(http, f"{base_url}/pages", token, payload)
        for start in range(MAX_BLOCKS_PER_REQUEST, len(blocks), MAX_BLOCKS_PER_REQUEST):
            chunk = blocks[start:start + MAX_BLOCKS_PER_REQUEST]
            response = http.patch(
                f"{base_url}/blocks/{page_id}/children",
                headers=_headers(token),
                json={"children": chunk},
            )
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise CollaboratorError(SERVICE, f"Request failed: {exc}") from exc
    except ValueError as exc:
        raise CollaboratorError(SERVICE, f"Malformed response: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    logger.info("Notion page created", extra={"page_id": page_id, "database_id": database_id})
    return page_id


__all__ = ["DEFAULT_DATABASE_TITLE", "create_database", "create_remote_note", "markdown_to_blocks"]
