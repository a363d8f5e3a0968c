"""Chat message formatting for job progress and results."""

from __future__ import annotations

import datetime as dt
import os
from typing import Iterable, Optional, Union

from voxnotes.db.models import Job, JobStatus

TRANSCRIPTION_PREVIEW_LIMIT = 500
NOTE_TITLE_FORMAT = "%d.%m.%Y %H:%M"

STATUS_LABELS: dict[JobStatus, tuple[str, str]] = {
    JobStatus.CREATED: ("🆕", "Created"),
    JobStatus.PENDING: ("⏳", "Queued"),
    JobStatus.QUEUED: ("⏳", "Queued"),
    JobStatus.PROCESSING: ("⚙️", "Processing"),
    JobStatus.TRANSCRIBED: ("📝", "Transcribed"),
    JobStatus.SUMMARIZED: ("📊", "Summarized"),
    JobStatus.COMPLETED: ("✅", "Completed"),
    JobStatus.FAILED: ("❌", "Failed"),
}


def status_label(status: Union[JobStatus, str]) -> str:
    try:
        emoji, text = STATUS_LABELS[JobStatus(status)]
    except ValueError:
        return "❓ Unknown"
    return f"{emoji} {text}"


def note_title(moment: Optional[dt.datetime] = None) -> str:
    moment = moment or dt.datetime.now()
    return f"Transcription from {moment.strftime(NOTE_TITLE_FORMAT)}"


def note_body(summary: str, transcription: str) -> str:
    return f"## Summary\n\n{summary}\n\n## Full transcription\n\n{transcription}"


def transcription_preview(text: str, limit: int = TRANSCRIPTION_PREVIEW_LIMIT) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_completion_message(job: Job) -> str:
    parts = ["✅ *Job completed!*\n\n"]
    if job.transcription:
        parts.append("📝 *Transcription:*\n")
        parts.append(transcription_preview(job.transcription))
        parts.append("\n\n")
    if job.summary:
        parts.append("📊 *Summary:*\n")
        parts.append(job.summary)
        parts.append("\n\n")
    if job.notion_page_id:
        parts.append("📎 *Saved to Notion*\n")
    return "".join(parts)


def format_progress(job_id: int, status: Union[JobStatus, str]) -> str:
    return f"Job `{job_id}`: {status_label(status)}"


def format_job_list(jobs: Iterable[Job]) -> str:
    jobs = list(jobs)
    if not jobs:
        return "You have no jobs yet. Send a voice message or an audio file to start."

    lines = ["📋 *Your jobs:*\n"]
    for index, job in enumerate(jobs, start=1):
        file_name = job.file_name or os.path.basename(job.audio_file_path or "") or f"job {job.id}"
        created = job.created_at.strftime(NOTE_TITLE_FORMAT) if job.created_at else "-"
        entry = f"{index}. {status_label(job.status)} *{file_name}*\n   Created: {created}"
        if job.status == JobStatus.COMPLETED.value and job.notion_page_id:
            entry += "\n   📎 Saved to Notion"
        if job.status == JobStatus.FAILED.value and job.error_message:
            entry += f"\n   Error: {job.error_message}"
        lines.append(entry)
    return "\n\n".join(lines)


__all__ = [
    "STATUS_LABELS",
    "TRANSCRIPTION_PREVIEW_LIMIT",
    "format_completion_message",
    "format_job_list",
    "format_progress",
    "note_body",
    "note_title",
    "status_label",
    "transcription_preview",
]
