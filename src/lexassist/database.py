"""Async database wiring for lexassist.

Repositories receive an async_sessionmaker and open one short-lived session
per operation, so background tasks never share a session with a request.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from lexassist.observability import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all lexassist tables."""


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for every persisted timestamp."""
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the configured database URL.

    Args:
        database_url: SQLAlchemy async URL (postgresql+asyncpg, sqlite+aiosqlite).
        echo: Whether to log emitted SQL.

    Returns:
        Configured AsyncEngine.
    """
    return create_async_engine(database_url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Build the session factory shared by all repositories."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_database(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Imported for its side effect of registering the mapped classes.
    from lexassist.core import models  # noqa: F401

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready", url=engine.url.render_as_string(hide_password=True))
