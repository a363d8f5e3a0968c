"""
Engine, session factory and schema bootstrap for voxnotes.
"""

import contextlib
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from voxnotes.config import DATABASE_URL, logger

from .models import Base

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_database() -> None:
    """Create tables for sqlite; other backends are managed by Alembic."""
    backend = engine.url.get_backend_name()

    if backend != "sqlite":
        logger.info("Skipping sqlite bootstrap for backend %s", backend)
        return

    Base.metadata.create_all(engine)
    logger.info("Database schema ensured", extra={"backend": backend})


@contextlib.contextmanager
def session_scope(session_factory=None) -> Iterator[Session]:
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
