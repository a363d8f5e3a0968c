"""Tests for chat message formatting."""

import datetime as dt
from types import SimpleNamespace

from voxnotes.db.models import JobStatus
from voxnotes.jobs.messages import (
    format_completion_message,
    format_job_list,
    format_progress,
    status_label,
    transcription_preview,
)


def _job(**overrides):
    values = dict(
        id=1,
        status=JobStatus.COMPLETED.value,
        audio_file_path="uploads/user_1/voice.ogg",
        file_name="",
        transcription="hello world",
        summary="greeting",
        notion_page_id=None,
        error_message=None,
        created_at=dt.datetime(2024, 1, 2, 3, 4),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_preview_truncates_long_text():
    assert transcription_preview("a" * 501) == "a" * 500 + "..."
    assert transcription_preview("a" * 500) == "a" * 500


def test_completion_message_sections():
    message = format_completion_message(_job(notion_page_id="page-123"))

    assert message.startswith("✅ *Job completed!*")
    assert "📝 *Transcription:*\nhello world" in message
    assert "📊 *Summary:*\ngreeting" in message
    assert message.rstrip().endswith("*Saved to Notion*")


def test_completion_message_skips_missing_parts():
    message = format_completion_message(_job(transcription=None, summary=""))
    assert "Transcription" not in message
    assert "Summary" not in message
    assert "Notion" not in message


def test_status_labels():
    assert status_label("queued") == "⏳ Queued"
    assert status_label(JobStatus.FAILED) == "❌ Failed"
    assert status_label("mystery") == "❓ Unknown"
    assert format_progress(7, "processing") == "Job `7`: ⚙️ Processing"


def test_job_list_uses_file_name_or_path():
    jobs = [
        _job(id=2, file_name="meeting.ogg", notion_page_id="page-1"),
        _job(id=1, status=JobStatus.FAILED.value, error_message="timeout"),
    ]

    text = format_job_list(jobs)

    assert "1. ✅ Completed *meeting.ogg*" in text
    assert "📎 Saved to Notion" in text
    assert "2. ❌ Failed *voice.ogg*" in text
    assert "Error: timeout" in text
    assert "Created: 02.01.2024 03:04" in text


def test_empty_job_list():
    assert "no jobs yet" in format_job_list([])
