# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Each test gets its own SQLite database (aiosqlite) wired into the app."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from outlinehub_server import rate_limit
from outlinehub_server.auth import create_access_token, hash_password
from outlinehub_server.database import get_db
from outlinehub_server.main import app
from outlinehub_server.models import Base, User
from outlinehub_server.services import email as email_service
from outlinehub_server.services.email import EmailDeliveryError

PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(PASSWORD)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # pysqlite's implicit transactions break SAVEPOINT; let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def _get_test_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    rate_limit.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class Outbox:
    """Records messages instead of delivering them. Set ``fail`` to simulate provider errors."""

    def __init__(self):
        self.messages: list[dict] = []
        self.fail: str | None = None

    async def send(self, to, subject, text, html_body, sender=None, reply_to=None):
        if self.fail:
            raise EmailDeliveryError(self.fail)
        self.messages.append(
            {"to": to, "subject": subject, "text": text, "html": html_body, "sender": sender, "reply_to": reply_to}
        )


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> Outbox:
    box = Outbox()
    monkeypatch.setattr(email_service, "send_email", box.send)
    return box


@pytest.fixture
def make_user(session_maker, password_hash):
    async def _make_user(email: str, name: str | None = None, verified: bool = True) -> User:
        async with session_maker() as session:
            user = User(
                email=email.lower(),
                name=name or email.split("@")[0],
                password_hash=password_hash,
                email_verified=verified,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make_user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def headers_for():
    return auth_headers
