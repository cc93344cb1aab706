"""
Async database engine for the hunt service.

SQLite (aiosqlite) in development and tests, PostgreSQL (asyncpg) in
production. One AsyncSession per request is the unit of work: a capture,
its tool spend and its new pet commit or roll back together.
"""
from typing import AsyncGenerator, Optional
import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, StaticPool
from sqlmodel import SQLModel

from pethunt.config import get_settings
from pethunt.core.errors import StorageError

logger = logging.getLogger(__name__)


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

_ASYNC_DRIVERS = (
    ("postgresql://", "postgresql+asyncpg://"),
    ("postgres://", "postgresql+asyncpg://"),
    ("sqlite://", "sqlite+aiosqlite://"),
)


def to_async_url(url: str) -> str:
    """Rewrite a plain database URL to use the async driver."""
    for prefix, async_prefix in _ASYNC_DRIVERS:
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


def get_database_url() -> str:
    return to_async_url(get_settings().DATABASE_URL)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an engine with pooling suited to the backend.

    File-backed SQLite opens a connection per checkout; in-memory SQLite
    must share its single connection or every session sees an empty
    database. PostgreSQL gets a bounded queue pool.
    """
    if database_url.startswith("sqlite"):
        in_memory = database_url.rstrip("/").endswith("aiosqlite:") or ":memory:" in database_url
        return create_async_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool if in_memory else NullPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows are mapped to dataclasses right away, so nothing needs reloading after commit
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """The process-wide engine, created on first use."""
    global _engine

    if _engine is None:
        database_url = get_database_url()
        _engine = build_engine(database_url, echo=get_settings().DEBUG)
        logger.info("Database engine created for %s", database_url.split("://", 1)[0])

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())

    return _session_factory


async def commit_session(session: AsyncSession) -> None:
    """Commit the unit of work, reporting driver failures as StorageError."""
    try:
        await session.commit()
    except SQLAlchemyError as e:
        logger.error("Storage failure during commit: %s", e)
        await session.rollback()
        raise StorageError("Storage failure during commit", operation="commit") from e


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    The hunt manager and pet service commit their own writes while they
    still hold the owner lock; this commits whatever is left, such as quest
    counters. Any exception rolls back the uncommitted remainder.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back request transaction", exc_info=True)
            await session.rollback()
            raise
        await commit_session(session)


async def create_tables(engine: AsyncEngine) -> None:
    # Registers the tables on SQLModel.metadata
    from pethunt.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db() -> None:
    """Create missing tables. Called from the app lifespan."""
    await create_tables(get_engine())


async def close_db() -> None:
    """Dispose of the engine on shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
