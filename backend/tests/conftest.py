"""
NoteGenius Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
Why:   Tests never touch a real database, Gemini, or the identity provider.
How:   Environment is overridden before any notegenius import; services are
       exercised with mocked sessions and patched collaborators.

Fixtures:
    mock_db_session  AsyncMock standing in for AsyncSession
    user / other_user  two signed-in users with distinct ids
    make_note        factory for Note ORM rows
    test_client      httpx AsyncClient bound to the ASGI app
    signed_in        routes see `user` as the current user (no provider call)
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

# Must run before notegenius.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["SUPABASE_URL"] = "https://project.supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["AUTH_COOKIE_SECURE"] = "false"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notegenius.models.note import Note
from notegenius.schemas.auth import AuthUser


# ══════════════════════════════════════════════════════════════════════════
# Users & Notes
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def user() -> AuthUser:
    return AuthUser(id=str(uuid4()), email="ada@example.com")


@pytest.fixture
def other_user() -> AuthUser:
    return AuthUser(id=str(uuid4()), email="grace@example.com")


@pytest.fixture
def make_note():
    """
    Builds Note rows the way the database would return them.

    Usage:
        note = make_note(user, title="Groceries", age_minutes=5)
    """
    def _make(owner: AuthUser, title: str = "Title", content: str = "Body",
              summary=None, age_minutes: int = 0) -> Note:
        stamp = datetime.now(timezone.utc) - timedelta(minutes=age_minutes)
        return Note(
            id=uuid4(),
            title=title,
            content=content,
            summary=summary,
            created_at=stamp,
            updated_at=stamp,
            user_id=UUID(owner.id),
        )
    return _make


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession.

    Usage:
        mock_db_session.execute.return_value = db_result(note)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.delete = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def db_result():
    """
    Builds a mocked execute() result exposing both scalar access patterns.

    Usage:
        mock_db_session.execute.return_value = db_result(note)
    """
    def _result(*notes):
        result = MagicMock()
        result.scalars.return_value.all.return_value = list(notes)
        result.scalar_one_or_none.return_value = notes[0] if notes else None
        return result
    return _result


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client():
    """
    httpx AsyncClient talking straight to the ASGI app.

    Redirects are not followed so tests can assert on 302/303 responses.
    """
    from notegenius.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(user, mock_db_session):
    """
    Makes every request resolve to `user` and use `mock_db_session`.

    The provider lookup itself is patched, so the redirect middleware and
    the route dependencies agree on the session.
    """
    from notegenius.database import get_db_session
    from notegenius.main import app
    from notegenius.services.auth_service import auth_service

    async def _db():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = _db
    with patch.object(auth_service, "get_user", AsyncMock(return_value=user)) as get_user:
        yield get_user
    app.dependency_overrides.clear()


@pytest.fixture
def signed_out():
    from notegenius.services.auth_service import auth_service

    with patch.object(auth_service, "get_user", AsyncMock(return_value=None)) as get_user:
        yield get_user
