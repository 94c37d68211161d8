import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable
from typing import TypeVar

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from carebook.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_async_database_url(database_url: str) -> str:
    """Rewrite a sync Postgres URL for asyncpg; any other URL is returned unchanged.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so they are
    stripped; SSL is enabled via connect_args instead.
    """
    url = make_url(database_url)
    if url.drivername != "postgresql":
        return database_url
    url = url.set(drivername="postgresql+asyncpg").difference_update_query(
        ["sslmode", "channel_binding"]
    )
    return url.render_as_string(hide_password=False)


async_database_url = to_async_database_url(settings.database_url)

_engine_kwargs: dict = {"echo": settings.env == "development", "pool_pre_ping": True}
if not async_database_url.startswith("sqlite"):
    _engine_kwargs.update(pool_size=5, max_overflow=10)
    if settings.db_ssl:
        _engine_kwargs["connect_args"] = {"ssl": True}

engine = create_async_engine(async_database_url, **_engine_kwargs)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def bounded(awaitable: Awaitable[T]) -> T:
    """Await a store call, raising ``asyncio.TimeoutError`` after ``store_timeout_seconds``."""
    return await asyncio.wait_for(awaitable, timeout=settings.store_timeout_seconds)


async def safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError as e:
        logger.warning("Rollback failed: %s", e)


async def init_db() -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
