"""Tests for the audio ingestion boundary and pipeline wiring."""

import io

import pytest

from voxnotes.db.models import JobStatus
from voxnotes.errors import CollaboratorError, QueueTransportError, UserNotFoundError
from voxnotes.jobs.bootstrap import build_pipeline
from voxnotes.jobs.ingest import AudioIngestion
from voxnotes.jobs.services import SERVICE_NAMES
from voxnotes.jobs.worker import JobWorker, WorkerConfig


@pytest.fixture
def ingestion(job_store, user_store, queue_service, fakes):
    return AudioIngestion(job_store, user_store, queue_service, fakes.services())


def test_submit_creates_user_job_and_first_queue_item(ingestion, user_store, queue_service):
    job = ingestion.submit(500, "uploads/user_500/voice.ogg", username="alice")

    user = user_store.get_by_telegram_id(500)
    assert user.username == "alice"
    assert job.user_id == user.id
    assert job.status == JobStatus.QUEUED.value
    assert job.file_name == "voice.ogg"
    assert job.duration == 12.5
    assert queue_service.queue_size("transcription") == 1

    queue_job = queue_service.pop_job("transcription", timeout=0)
    assert queue_job.payload.audio_path == "uploads/user_500/voice.ogg"


def test_submit_tolerates_probe_failure(ingestion, fakes):
    def broken_probe(path):
        raise CollaboratorError("ffmpeg", "ffprobe failed")

    ingestion.services.probe_duration = broken_probe

    job = ingestion.submit(500, "voice.ogg", file_name="Meeting notes")

    assert job.duration == 0.0
    assert job.file_name == "Meeting notes"


def test_submit_marks_job_failed_when_queue_push_fails(ingestion, job_store, user_store, monkeypatch):
    def broken_push(queue_name, queue_job):
        raise QueueTransportError("broker down")

    monkeypatch.setattr(ingestion.queue_service.work_queue, "push", broken_push)

    with pytest.raises(QueueTransportError):
        ingestion.submit(500, "voice.ogg")

    user = user_store.get_by_telegram_id(500)
    (job,) = job_store.get_by_user(user.id)
    assert job.status == JobStatus.FAILED.value
    assert job.error_message == "broker down"
    assert job.completed_at is not None


def test_status_result_and_listing(ingestion):
    first = ingestion.submit(500, "a.ogg")
    second = ingestion.submit(500, "b.ogg")

    assert ingestion.job_status(first.id) == JobStatus.QUEUED.value
    assert ingestion.job_result(second.id).audio_file_path == "b.ogg"
    assert [job.id for job in ingestion.user_jobs(500)] == [second.id, first.id]


def test_user_jobs_for_unknown_user(ingestion):
    with pytest.raises(UserNotFoundError):
        ingestion.user_jobs(999)


def test_build_pipeline_runs_submission_to_completion(session_factory, work_queue, fakes, drain):
    overrides = {
        name: getattr(fakes, name)
        for name in SERVICE_NAMES
    }
    pipeline = build_pipeline(
        work_queue=work_queue,
        session_factory=session_factory,
        service_overrides=overrides,
    )
    worker = JobWorker(pipeline.queue_service, pipeline.queue_service.registry, WorkerConfig(idle_sleep=0))

    job = pipeline.ingestion.submit(42, "a.ogg")
    drain(pipeline.queue_service, worker)

    done = pipeline.job_store.get_by_id(job.id)
    assert done.status == JobStatus.COMPLETED.value
    assert done.summary == "greeting"
    assert [destination for destination, _ in fakes.sent] == [42]


def test_save_upload_writes_into_user_directory(ingestion, tmp_path):
    path = ingestion.save_upload(500, io.BytesIO(b"OggS"), "../voice.ogg", uploads_dir=tmp_path)

    assert path == str(tmp_path / "user_500" / "voice.ogg")
    assert (tmp_path / "user_500" / "voice.ogg").read_bytes() == b"OggS"


def test_setup_note_sync_creates_database_and_stores_it(ingestion, user_store, user, fakes):
    configured = ingestion.setup_note_sync(42, "secret", "parent-1")

    assert fakes.called("create_remote_database") == [("create_remote_database", "secret", "parent-1")]
    assert configured.notion_database_id == "db-new"
    assert user_store.get_by_telegram_id(42).notion_token == "secret"


def test_setup_note_sync_keeps_user_unchanged_on_failure(ingestion, user_store, user):
    def broken_create(token, parent_page_id):
        raise CollaboratorError("notion", "no access to parent page")

    ingestion.services.create_remote_database = broken_create

    with pytest.raises(CollaboratorError):
        ingestion.setup_note_sync(42, "secret", "parent-1")
    assert user_store.get_by_telegram_id(42).notion_database_id is None
