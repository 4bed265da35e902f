"""Shared test fixtures.

Every test that touches the database gets a fresh SQLite file built from the
ORM metadata. Redis is left uninitialized, so rate limiting is skipped and
event publishing is a no-op unless a test injects a mock.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from datetime import date, time, timedelta
from typing import Any

os.environ.setdefault("PD_LOG_FORMAT", "console")
os.environ.setdefault("PD_ENVIRONMENT", "test")
os.environ.setdefault("PD_JWT_SECRET", "test-secret-not-for-production")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.auth.jwt import create_access_token
from pdportal.config import get_settings
from pdportal.database import close_db, get_engine, get_session_factory, init_db
from pdportal.db.base import Base
from pdportal.db.models import PDSession, Presenter, SessionStatus, User, UserRole
from pdportal.email.service import BaseEmailProvider, EmailService, OutgoingEmail, set_email_service

get_settings.cache_clear()


class RecordingEmailProvider(BaseEmailProvider):
    """Email provider that keeps messages in memory."""

    name = "recording"

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def deliver(self, message: OutgoingEmail) -> bool:
        self.sent.append({
            "to": message.to,
            "subject": message.subject,
            "html": message.html_body,
            "text": message.text_body,
            "template": message.template or "",
        })
        return True


@pytest.fixture(autouse=True)
def email_outbox() -> Generator[list[dict[str, str]], None, None]:
    """Route all outgoing mail to an in-memory outbox."""
    provider = RecordingEmailProvider()
    set_email_service(EmailService(provider=provider, redis=None))
    yield provider.sent
    set_email_service(None)


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[str, None]:
    """Initialize the engine on a temporary SQLite file with the full schema."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'pdportal_test.db'}"
    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: str) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh app bound to the test database."""
    from pdportal.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    counter = {"n": 0}

    async def _make(role: str = UserRole.STAFF.value, first_name: str = "Test", **kwargs: Any) -> User:
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"user{counter['n']}@school.example"),
            first_name=first_name,
            last_name=kwargs.pop("last_name", f"User{counter['n']}"),
            role=role,
            is_active=True,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_session(db_session: AsyncSession) -> Callable[..., Awaitable[PDSession]]:
    counter = {"n": 0}

    async def _make(
        capacity: int | None = None,
        status: str = SessionStatus.PUBLISHED.value,
        session_date: date | None = None,
        with_presenter: bool = False,
        **kwargs: Any,
    ) -> PDSession:
        counter["n"] += 1
        presenter_id = None
        if with_presenter:
            presenter = Presenter(name="Dr. Rivera", email="rivera@school.example", bio="Literacy coach")
            db_session.add(presenter)
            await db_session.flush()
            presenter_id = presenter.id
        session = PDSession(
            title=kwargs.pop("title", f"Workshop {counter['n']}"),
            description=kwargs.pop("description", "Hands-on PD workshop"),
            presenter_id=presenter_id,
            location=kwargs.pop("location", "Room 101"),
            session_date=session_date or date(2024, 6, 1) + timedelta(days=counter["n"]),
            start_time=kwargs.pop("start_time", time(15, 30)),
            end_time=kwargs.pop("end_time", time(16, 30)),
            capacity=capacity,
            status=status,
            **kwargs,
        )
        db_session.add(session)
        await db_session.commit()
        return session

    return _make


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer headers for a user, as issued by the login flow."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.role, user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
