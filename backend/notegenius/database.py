"""
NoteGenius Backend — Database Session Management
==================================================

What:  Async SQLAlchemy engine, session factory, FastAPI dependency, and
       row-level security scoping.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Row-Level Security:
    The `notes` table carries policies of the form `auth.uid() = user_id`.
    `auth.uid()` reads the `sub` claim from the `request.jwt.claims` setting,
    so before touching notes a transaction:
        1. switches to the `authenticated` role (SET LOCAL ROLE)
        2. publishes the caller's claims (set_config(..., is_local => true))
    Both settings end with the transaction, so a pooled connection never
    leaks one user's identity into the next request.
"""

import json
import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notegenius.config import settings

logger = logging.getLogger(__name__)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after the request's commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            # Roll back for ANY failure, including errors raised after the queries ran
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Row-Level Security ────────────────────────────────────────────────────
def _dialect_name(session: AsyncSession) -> str:
    bind = session.bind
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", "") if dialect is not None else ""


async def apply_row_level_security(session: AsyncSession, user_id: str) -> bool:
    """
    Scope the current transaction to `user_id` so database policies apply.

    Returns True when the scoping statements were issued. On non-PostgreSQL
    databases (SQLite in tests) or with DB_ROW_LEVEL_SECURITY=false this is
    a no-op; owner filters in NoteService still keep users apart.
    """
    if not settings.db_row_level_security:
        return False
    if _dialect_name(session) != "postgresql":
        return False

    claims = json.dumps({"sub": str(user_id), "role": "authenticated"})
    await session.execute(
        text("SELECT set_config('request.jwt.claims', :claims, true)"),
        {"claims": claims},
    )
    await session.execute(text("SET LOCAL ROLE authenticated"))
    logger.debug("Row-level security scoped to user %s", user_id)
    return True


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections on application shutdown."""
    await engine.dispose()
