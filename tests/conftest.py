"""Shared fixtures: a throwaway sqlite database and fake collaborators."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="voxnotes_tests_"))
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["QUEUE_BACKEND"] = "database"

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from voxnotes.db.models import Base
from voxnotes.jobs.handlers import JobHandlerRegistry
from voxnotes.jobs.queue import DatabaseWorkQueue
from voxnotes.jobs.service import QueueService
from voxnotes.jobs.services import PipelineServices
from voxnotes.jobs.store import JobStore
from voxnotes.jobs.users import UserStore


@pytest.fixture
def session_factory():
    fd, path = tempfile.mkstemp(suffix="_voxnotes_tests.sqlite")
    os.close(fd)

    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    assert inspect(engine).has_table("jobs"), "jobs table must exist for tests"
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    yield Session

    Base.metadata.drop_all(engine)
    engine.dispose()
    try:
        os.unlink(path)
    except FileNotFoundError:  # pragma: no cover - cleanup guard
        pass


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def user_store(session_factory):
    return UserStore(session_factory)


@pytest.fixture
def work_queue(session_factory):
    return DatabaseWorkQueue(session_factory, pop_timeout=0)


@pytest.fixture
def queue_service(work_queue, job_store):
    return QueueService(work_queue, job_store, JobHandlerRegistry())


class FakeCollaborators:
    """Records every collaborator call and returns canned results."""

    def __init__(self):
        self.calls = []
        self.transcript = "hello world"
        self.summary = "greeting"
        self.page_id = "page-123"
        self.database_id = "db-new"
        self.duration = 12.5
        self.sent = []

    def transcode(self, path):
        self.calls.append(("transcode", path))
        return f"{path}.wav"

    def transcribe(self, path):
        self.calls.append(("transcribe", path))
        return self.transcript

    def summarize(self, text):
        self.calls.append(("summarize", text))
        return self.summary

    def create_remote_note(self, token, database_id, title, body):
        self.calls.append(("create_remote_note", token, database_id, title, body))
        return self.page_id

    def create_remote_database(self, token, parent_page_id):
        self.calls.append(("create_remote_database", token, parent_page_id))
        return self.database_id

    def notify(self, destination, message):
        self.calls.append(("notify", destination))
        self.sent.append((destination, message))

    def probe_duration(self, path):
        self.calls.append(("probe_duration", path))
        return self.duration

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def services(self):
        return PipelineServices(
            transcode=self.transcode,
            transcribe=self.transcribe,
            summarize=self.summarize,
            create_remote_note=self.create_remote_note,
            create_remote_database=self.create_remote_database,
            notify=self.notify,
            probe_duration=self.probe_duration,
        )


@pytest.fixture
def fakes():
    return FakeCollaborators()


@pytest.fixture
def user(user_store):
    return user_store.get_or_create(42, username="tester")


@pytest.fixture
def drain():
    def _drain(queue_service, worker, limit=50):
        """Pop and process items until every consumed queue is empty."""
        handled = []
        for _ in range(limit):
            queue_job = queue_service.pop_job(queue_service.consumed_queues(), timeout=0)
            if queue_job is None:
                return handled
            worker.process(queue_job)
            handled.append(queue_job)
        raise AssertionError("queue did not drain")

    return _drain
