"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- async session factory used by PgCredentialStore
- FastAPI lifespan hook: startup check of registry_state, shutdown dispose

When DATABASE_URL is None, all exports are None and the registry
falls back to the Redis or in-memory store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.  Startup checks that
    the registry tables are reachable; a failure is logged and the app
    keeps serving so /health can report the database as degraded.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, database store disabled")
        yield
        return

    try:
        async with engine.connect() as conn:
            last_id = (
                await conn.execute(text("SELECT last_credential_id FROM registry_state"))
            ).scalar_one_or_none()
        logger.info(
            "Database connected: %s  last_credential_id=%s",
            engine.url.render_as_string(hide_password=True),
            last_id if last_id is not None else "unseeded",
        )
    except Exception:
        logger.exception("Database check failed on startup (migrations applied?)")

    yield

    await engine.dispose()
    logger.info("Database engine disposed")
