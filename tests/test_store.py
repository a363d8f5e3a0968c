"""Tests for the job and user stores."""

import pytest

from voxnotes.db.models import JobStatus
from voxnotes.errors import InvalidUserError, JobNotFoundError, UserNotFoundError


def test_create_forces_created_status_and_timestamps(job_store, user):
    job = job_store.create(user.id, "uploads/a.ogg", file_name="a.ogg", duration=3.5)

    assert job.id is not None
    assert job.status == JobStatus.CREATED.value
    assert job.created_at is not None
    assert job.updated_at is not None
    assert job.completed_at is None
    assert job.file_name == "a.ogg"
    assert job.duration == 3.5


def test_create_rejects_unknown_owner(job_store):
    with pytest.raises(InvalidUserError):
        job_store.create(999, "a.ogg")


def test_get_by_id_missing_job_raises_not_found(job_store):
    with pytest.raises(JobNotFoundError) as excinfo:
        job_store.get_by_id(404)
    assert excinfo.value.job_id == 404


@pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
def test_terminal_status_sets_completed_at(job_store, user, status):
    job = job_store.create(user.id, "a.ogg")

    job_store.update_status(job.id, status, "boom")

    stored = job_store.get_by_id(job.id)
    assert stored.status == status.value
    assert stored.completed_at is not None


def test_non_terminal_status_keeps_completed_at_empty(job_store, user):
    job = job_store.create(user.id, "a.ogg")

    for status in (JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.TRANSCRIBED, JobStatus.SUMMARIZED):
        job_store.update_status(job.id, status)
        assert job_store.get_by_id(job.id).completed_at is None


def test_error_message_only_kept_for_failed(job_store, user):
    job = job_store.create(user.id, "a.ogg")

    job_store.update_status(job.id, JobStatus.PROCESSING, "ignored")
    assert job_store.get_by_id(job.id).error_message is None

    job_store.update_status(job.id, JobStatus.FAILED, "transcriber timed out")
    failed = job_store.get_by_id(job.id)
    assert failed.error_message == "transcriber timed out"

    job_store.update_status(job.id, "queued")
    requeued = job_store.get_by_id(job.id)
    assert requeued.error_message is None
    assert requeued.completed_at is None


def test_update_status_missing_job_raises(job_store):
    with pytest.raises(JobNotFoundError):
        job_store.update_status(7, JobStatus.QUEUED)


def test_update_status_rejects_unknown_value(job_store, user):
    job = job_store.create(user.id, "a.ogg")
    with pytest.raises(ValueError):
        job_store.update_status(job.id, "archived")


def test_field_updates_bump_updated_at(job_store, user):
    job = job_store.create(user.id, "a.ogg")

    job_store.set_transcription(job.id, "hello world")
    job_store.set_summary(job.id, "greeting")
    job_store.set_sync_identifiers(job.id, "page-123", "db-1")

    stored = job_store.get_by_id(job.id)
    assert stored.transcription == "hello world"
    assert stored.summary == "greeting"
    assert stored.notion_page_id == "page-123"
    assert stored.notion_database_id == "db-1"
    assert stored.updated_at >= job.updated_at


def test_get_by_user_returns_newest_first_with_paging(job_store, user, user_store):
    other = user_store.get_or_create(7)
    ids = [job_store.create(user.id, f"{index}.ogg").id for index in range(5)]
    job_store.create(other.id, "other.ogg")

    jobs = job_store.get_by_user(user.id, limit=3)
    assert [job.id for job in jobs] == list(reversed(ids))[:3]

    tail = job_store.get_by_user(user.id, limit=3, offset=3)
    assert [job.id for job in tail] == list(reversed(ids))[3:]


def test_get_or_create_is_idempotent_and_updates_profile(user_store):
    first = user_store.get_or_create(100, username="old")
    second = user_store.get_or_create(100, username="new", first_name="Ann")

    assert first.id == second.id
    assert second.username == "new"
    assert second.first_name == "Ann"
    assert second.has_note_sync is False


def test_configure_note_sync_requires_both_values(user_store):
    user_store.get_or_create(100)
    with pytest.raises(ValueError):
        user_store.configure_note_sync(100, "secret", " ")


def test_configure_and_clear_note_sync(user_store):
    user_store.get_or_create(100)

    configured = user_store.configure_note_sync(100, "secret", "db-1")
    assert configured.has_note_sync is True
    assert user_store.get_by_id(configured.id).notion_database_id == "db-1"

    user_store.clear_note_sync(100)
    assert user_store.get_by_telegram_id(100).has_note_sync is False


def test_user_lookups_raise_not_found(user_store):
    with pytest.raises(UserNotFoundError):
        user_store.get_by_id(1)
    with pytest.raises(UserNotFoundError):
        user_store.get_by_telegram_id(1)
    with pytest.raises(UserNotFoundError):
        user_store.configure_note_sync(1, "secret", "db")
