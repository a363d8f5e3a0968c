"""Submitter records and note-sync credentials."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import select

from voxnotes.config import logger
from voxnotes.db.database import SessionLocal
from voxnotes.db.models import User
from voxnotes.errors import UserNotFoundError

from .store import SessionFactory, store_session


class UserStore:
    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def get_or_create(
        self,
        telegram_id: int,
        *,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """Return the user for a chat id, creating it on first contact."""
        with store_session(self._session_factory) as session:
            user = self._by_telegram_id(session, telegram_id)
            if user is None:
                user = User(
                    telegram_id=telegram_id,
                    username=username,
                    first_name=first_name,
                    last_name=last_name,
                )
                session.add(user)
                session.flush()
                logger.info("User created", extra={"user_id": user.id, "telegram_id": telegram_id})
            else:
                changed = False
                for attr, value in (
                    ("username", username),
                    ("first_name", first_name),
                    ("last_name", last_name),
                ):
                    if value and getattr(user, attr) != value:
                        setattr(user, attr, value)
                        changed = True
                if changed:
                    user.updated_at = dt.datetime.utcnow()
                    session.flush()
            session.refresh(user)
            session.expunge(user)
            return user

    def get_by_id(self, user_id: int) -> User:
        with store_session(self._session_factory) as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(user_id=user_id)
            session.expunge(user)
            return user

    def get_by_telegram_id(self, telegram_id: int) -> User:
        with store_session(self._session_factory) as session:
            user = self._by_telegram_id(session, telegram_id)
            if user is None:
                raise UserNotFoundError(telegram_id=telegram_id)
            session.expunge(user)
            return user

    def configure_note_sync(self, telegram_id: int, token: str, database_id: str) -> User:
        token = (token or "").strip()
        database_id = (database_id or "").strip()
        if not token or not database_id:
            raise ValueError("Both integration token and database id are required.")
        with store_session(self._session_factory) as session:
            user = self._by_telegram_id(session, telegram_id)
            if user is None:
                raise UserNotFoundError(telegram_id=telegram_id)
            user.notion_token = token
            user.notion_database_id = database_id
            user.updated_at = dt.datetime.utcnow()
            session.flush()
            session.refresh(user)
            session.expunge(user)
        logger.info(
            "Note sync configured",
            extra={"user_id": user.id, "notion_database_id": database_id},
        )
        return user

    def clear_note_sync(self, telegram_id: int) -> None:
        with store_session(self._session_factory) as session:
            user = self._by_telegram_id(session, telegram_id)
            if user is None:
                raise UserNotFoundError(telegram_id=telegram_id)
            user.notion_token = None
            user.notion_database_id = None
            user.updated_at = dt.datetime.utcnow()

    @staticmethod
    def _by_telegram_id(session, telegram_id: int) -> Optional[User]:
        return session.execute(
            select(User).where(User.telegram_id == telegram_id)
        ).scalar_one_or_none()


__all__ = ["UserStore"]
