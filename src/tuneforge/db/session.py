"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from tuneforge.config import DatabaseSettings


class Base(DeclarativeBase):
    """Declarative base for all models."""


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the async engine described by ``settings``."""
    if settings.url.startswith("sqlite"):
        # SQLite has no server-side pool
        return create_async_engine(settings.url, echo=settings.echo)

    return create_async_engine(
        settings.url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from tuneforge import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session bound to the app's engine."""
    async with request.app.state.session_maker() as session:
        yield session

