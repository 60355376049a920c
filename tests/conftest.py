# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from contextlib import nullcontext
from datetime import datetime, timedelta
from itertools import count
from typing import Any
from unittest.mock import MagicMock

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PRESENCE_REDIS_ENABLED", "false")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jugger_connect.core.security import create_access_token
from jugger_connect.db.session import Base
from jugger_connect.db.session import get_db as app_get_session
from jugger_connect.db.time import utcnow
from jugger_connect.main import app as fastapi_app
from jugger_connect.models import Message, User
from jugger_connect.realtime.connection import Connection
from jugger_connect.realtime.router import EventRouter, get_event_router

TEST_DB_URL = "sqlite://"

_EMAIL_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def event_router(db_session: Session) -> EventRouter:
    """Event router whose worker-thread sessions are the test session."""
    return EventRouter(session_factory=lambda: nullcontext(db_session))


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    event_router: EventRouter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_event_router] = lambda: event_router
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_event_router, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with unique emails."""

    def _make_user(name: str, avatar: str = "") -> User:
        user = User(
            name=name,
            email=f"user{next(_EMAIL_COUNTER)}@example.com",
            avatar=avatar,
        )
        db_session.add(user)
        db_session.flush()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("Alice", avatar="https://cdn.example.com/alice.png")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("Carol")


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return _auth_headers(alice)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return _auth_headers(bob)


@pytest.fixture()
def make_message(db_session: Session) -> Callable[..., Message]:
    """Return a factory inserting messages directly, bypassing validation.

    Each message is stamped one second after the previous one unless
    ``created_at`` is given, so ordering in tests is deterministic.
    """
    clock: dict[str, datetime] = {"now": utcnow() - timedelta(hours=1)}

    def _make_message(
        sender: User,
        receiver: User,
        content: str = "hello",
        *,
        is_read: bool = False,
        is_deleted: bool = False,
        created_at: datetime | None = None,
    ) -> Message:
        if created_at is None:
            clock["now"] += timedelta(seconds=1)
            created_at = clock["now"]
        message = Message(
            sender_id=sender.id,
            receiver_id=receiver.id,
            content=content,
            is_read=is_read,
            is_deleted=is_deleted,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(message)
        db_session.flush()
        db_session.refresh(message)
        return message

    return _make_message


@pytest.fixture()
def make_connection() -> Callable[[int], Connection]:
    """Return a factory of connections over mocked websockets."""

    def _make_connection(user_id: int) -> Connection:
        return Connection(MagicMock(), user_id)

    return _make_connection


def _drain(connection: Connection) -> list[dict[str, Any]]:
    frames: list[dict[str, Any]] = []
    while not connection.outbox.empty():
        frame = connection.outbox.get_nowait()
        if frame is not None:
            frames.append(frame)
    return frames


@pytest.fixture()
def drain() -> Callable[[Connection], list[dict[str, Any]]]:
    """Pop every queued frame from a connection's outbox."""
    return _drain


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    return _auth_headers
