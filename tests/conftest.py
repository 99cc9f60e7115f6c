"""Shared test fixtures for lexassist."""

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from lexassist.adapters.repositories import (
    ActivityRepository,
    ConversationRepository,
    DocumentRepository,
    MessageRepository,
    UserRepository,
)
from lexassist.core.models import User
from lexassist.database import create_engine, create_session_factory, init_database
from lexassist.settings import Settings


@pytest.fixture
def settings(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings pointing at a throwaway SQLite file with AI disabled.

    Returns:
        Settings suitable for running the full app in-process.
    """
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LEXASSIST_GEMINI_API_KEY", raising=False)
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'lexassist.db'}",
        gemini_api_key=None,
        log_format="console",
    )


@pytest.fixture
async def session_factory(settings: Settings) -> async_sessionmaker:
    """Session factory over a freshly created schema.

    Yields:
        async_sessionmaker bound to the test database.
    """
    engine = create_engine(settings.database_url)
    await init_database(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def user_repository(session_factory: async_sessionmaker) -> UserRepository:
    return UserRepository(session_factory)


@pytest.fixture
def document_repository(session_factory: async_sessionmaker) -> DocumentRepository:
    return DocumentRepository(session_factory)


@pytest.fixture
def activity_repository(session_factory: async_sessionmaker) -> ActivityRepository:
    return ActivityRepository(session_factory)


@pytest.fixture
def conversation_repository(session_factory: async_sessionmaker) -> ConversationRepository:
    return ConversationRepository(session_factory)


@pytest.fixture
def message_repository(session_factory: async_sessionmaker) -> MessageRepository:
    return MessageRepository(session_factory)


@pytest.fixture
async def user(user_repository: UserRepository) -> User:
    """A stored user in the default (US) jurisdiction."""
    return await user_repository.create(username="alice", email="alice@example.com", first_name="Alice")


@pytest.fixture
async def indian_user(user_repository: UserRepository) -> User:
    """A stored user in the Indian jurisdiction."""
    return await user_repository.create(username="ravi", email="ravi@example.com", jurisdiction="IN")
