"""Database infrastructure: async engine, schema bootstrap and sessions."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Tuple

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ..config import BaseConfig

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def _apply_sqlite_pragmas(engine: AsyncEngine, pragmas: dict[str, str]) -> None:
    """Run PRAGMA statements on every new SQLite connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        try:
            for key, value in pragmas.items():
                cursor.execute(f"PRAGMA {key}={value}")
        finally:
            cursor.close()


def create_db_engine(config: BaseConfig) -> AsyncEngine:
    """Create the async SQLAlchemy engine from configuration."""
    engine = create_async_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())
    if config.is_sqlite:
        _apply_sqlite_pragmas(engine, config.SQLITE_PRAGMAS)
    return engine


async def init_database(engine: AsyncEngine) -> None:
    """Initialize database schema."""
    # Import all models to ensure they're registered
    from .. import models  # noqa: F401

    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory function.

    Each call returns an async context manager yielding an ``AsyncSession``
    that commits on success and rolls back on any error.
    """

    @asynccontextmanager
    async def factory() -> AsyncIterator[AsyncSession]:
        """Create a new session."""
        session = AsyncSession(engine, expire_on_commit=False)
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return factory


async def bootstrap_database(config: BaseConfig | None = None) -> Tuple[AsyncEngine, SessionFactory]:
    """Convenience bootstrap for engine + session_factory with schema init.

    Used by ``create_app_context`` so every entry point gets the same engine
    options and session configuration. Returns (engine, session_factory).
    """

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    await init_database(engine)
    return engine, create_session_factory(engine)
