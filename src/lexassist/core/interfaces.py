"""Abstract interfaces (Protocol classes) for lexassist.

Services depend on interfaces, not concrete implementations,
enabling dependency injection and easy test mocking.
"""

import uuid
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from lexassist.core.models import (
    Activity,
    ActivityType,
    Conversation,
    Document,
    DocumentCategory,
    DocumentStatus,
    Message,
    MessageSender,
    User,
)
from lexassist.core.results import AnalysisResult, ChatReply


@runtime_checkable
class IUserRepository(Protocol):
    """Repository interface for User records."""

    async def get_by_id(self, user_id: uuid.UUID) -> User | None: ...

    async def create(
        self,
        username: str,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        jurisdiction: str | None = None,
    ) -> User: ...


@runtime_checkable
class IDocumentRepository(Protocol):
    """Repository interface for Document records."""

    async def get_by_id(self, document_id: uuid.UUID) -> Document | None: ...

    async def list_by_user(
        self, user_id: uuid.UUID, category: DocumentCategory | None = None
    ) -> list[Document]: ...

    async def create(
        self,
        user_id: uuid.UUID,
        filename: str,
        category: DocumentCategory,
        content_type: str | None = None,
        file_size: int = 0,
    ) -> Document: ...

    async def transition_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        analysis_result: dict | None = None,
    ) -> Document:
        """Atomically move a document to a new status.

        Raises:
            NotFoundError: If the document does not exist.
            InvalidStatusTransitionError: If the move is not allowed from the
                document's current status.
        """
        ...


@runtime_checkable
class IActivityRepository(Protocol):
    """Repository interface for the append-only activity trail."""

    async def create(
        self,
        user_id: uuid.UUID,
        activity_type: ActivityType,
        details: dict,
        related_document_id: uuid.UUID | None = None,
    ) -> Activity: ...

    async def list_by_user(self, user_id: uuid.UUID, limit: int = 10) -> list[Activity]: ...

    async def list_by_document(self, document_id: uuid.UUID) -> list[Activity]: ...


@runtime_checkable
class IConversationRepository(Protocol):
    """Repository interface for Conversation records."""

    async def get_by_id(self, conversation_id: uuid.UUID) -> Conversation | None: ...

    async def get_active(self, user_id: uuid.UUID) -> Conversation | None: ...

    async def get_or_create_active(self, user_id: uuid.UUID) -> tuple[Conversation, bool]: ...

    async def start_new(self, user_id: uuid.UUID) -> tuple[Conversation, int]: ...

    async def touch(self, conversation_id: uuid.UUID, last_message_at: datetime) -> Conversation | None: ...


@runtime_checkable
class IMessageRepository(Protocol):
    """Repository interface for Message records."""

    async def create(
        self,
        conversation_id: uuid.UUID,
        sender: MessageSender,
        content: str,
        reasoning_log: list[dict] | None = None,
    ) -> Message: ...

    async def list_by_conversation(self, conversation_id: uuid.UUID) -> list[Message]: ...


@runtime_checkable
class IAnalysisGeneratorProtocol(Protocol):
    """Produces an AnalysisResult for a document's text.

    Implementations absorb AI failures by falling back to deterministic
    content; only total unavailability escapes as GenerationUnavailableError.
    """

    async def generate(
        self,
        document_text: str,
        category: DocumentCategory | str,
        jurisdiction: str,
    ) -> AnalysisResult: ...


@runtime_checkable
class IResponseGeneratorProtocol(Protocol):
    """Produces the assistant's reply to a conversational turn."""

    async def generate(
        self,
        history: Sequence[Message],
        user_message: str,
        jurisdiction: str,
    ) -> ChatReply: ...


@runtime_checkable
class IEventPublisherProtocol(Protocol):
    """Publishes real-time events to a user's live connections."""

    async def publish_document_update(self, document: Document) -> int: ...

    async def publish_message_update(self, user_id: uuid.UUID, message: Message) -> int: ...


@runtime_checkable
class ITaskRunnerProtocol(Protocol):
    """Runs fire-and-forget units of work outside the request."""

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str | None = None,
    ) -> None: ...


__all__ = [
    "IUserRepository",
    "IDocumentRepository",
    "IActivityRepository",
    "IConversationRepository",
    "IMessageRepository",
    "IAnalysisGeneratorProtocol",
    "IResponseGeneratorProtocol",
    "IEventPublisherProtocol",
    "ITaskRunnerProtocol",
]
