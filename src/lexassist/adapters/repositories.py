"""SQLAlchemy repository implementations for lexassist.

Each repository receives the shared async_sessionmaker and runs every
operation in its own short transaction. Read-modify-write operations
(status transitions, conversation updates) select and update the record
inside one transaction, which gives the per-record atomicity the
orchestrator relies on.
"""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from lexassist.core.interfaces import (
    IActivityRepository,
    IConversationRepository,
    IDocumentRepository,
    IMessageRepository,
    IUserRepository,
)
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
from lexassist.core.state import ensure_transition
from lexassist.database import as_utc, utcnow
from lexassist.errors import NotFoundError

OPEN_CONVERSATION_ATTEMPTS = 3


class BaseRepository:
    """Holds the session factory shared by all repositories.

    Args:
        session_factory: Factory producing AsyncSession instances.
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory


class UserRepository(BaseRepository, IUserRepository):
    """Repository for User records."""

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def create(
        self,
        username: str,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        jurisdiction: str | None = None,
    ) -> User:
        """Create a user record.

        Args:
            username: Unique login name.
            email: Unique email address.
            first_name: Optional given name.
            last_name: Optional family name.
            jurisdiction: Region code; the column default applies when None.

        Returns:
            The newly created User.
        """
        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
        )
        if jurisdiction is not None:
            user.jurisdiction = jurisdiction
        async with self._session_factory() as session, session.begin():
            session.add(user)
        return user


class DocumentRepository(BaseRepository, IDocumentRepository):
    """Repository for Document records."""

    async def get_by_id(self, document_id: uuid.UUID) -> Document | None:
        async with self._session_factory() as session:
            return await session.get(Document, document_id)

    async def list_by_user(
        self, user_id: uuid.UUID, category: DocumentCategory | None = None
    ) -> list[Document]:
        """List a user's documents, newest upload first.

        Args:
            user_id: Owner of the documents.
            category: Optional category filter.

        Returns:
            Matching documents ordered by upload date descending.
        """
        query = select(Document).where(Document.user_id == user_id)
        if category is not None:
            query = query.where(Document.category == category.value)
        query = query.order_by(Document.upload_date.desc())
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def create(
        self,
        user_id: uuid.UUID,
        filename: str,
        category: DocumentCategory,
        content_type: str | None = None,
        file_size: int = 0,
    ) -> Document:
        """Create a document in pending status.

        Args:
            user_id: Owner of the document.
            filename: Original filename as uploaded.
            category: Analysis category.
            content_type: MIME type reported at upload.
            file_size: Payload size in bytes.

        Returns:
            The newly created Document with status=pending.
        """
        document = Document(
            user_id=user_id,
            filename=filename,
            category=category.value,
            status=DocumentStatus.PENDING.value,
            upload_date=utcnow(),
            content_type=content_type,
            file_size=file_size,
            analysis_result=None,
        )
        async with self._session_factory() as session, session.begin():
            session.add(document)
        return document

    async def transition_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        analysis_result: dict | None = None,
    ) -> Document:
        """Move a document to a new status inside a single transaction.

        analysis_result is stored only on completion and cleared otherwise,
        so it is present exactly when the document is completed.

        Args:
            document_id: Document to update.
            status: Target status.
            analysis_result: Result payload; used only when status is completed.

        Returns:
            The updated Document.

        Raises:
            NotFoundError: If the document does not exist.
            InvalidStatusTransitionError: If the move violates the lifecycle.
        """
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(Document).where(Document.id == document_id).with_for_update()
            )
            document = result.scalar_one_or_none()
            if document is None:
                raise NotFoundError(f"Document {document_id} not found")
            ensure_transition(document.status, status)
            document.status = status.value
            document.analysis_result = analysis_result if status is DocumentStatus.COMPLETED else None
        return document


class ActivityRepository(BaseRepository, IActivityRepository):
    """Repository for the append-only activity trail. No update or delete."""

    async def create(
        self,
        user_id: uuid.UUID,
        activity_type: ActivityType,
        details: dict,
        related_document_id: uuid.UUID | None = None,
    ) -> Activity:
        activity = Activity(
            user_id=user_id,
            type=activity_type.value,
            timestamp=utcnow(),
            details=dict(details),
            related_document_id=related_document_id,
        )
        async with self._session_factory() as session, session.begin():
            session.add(activity)
        return activity

    async def list_by_user(self, user_id: uuid.UUID, limit: int = 10) -> list[Activity]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Activity)
                .where(Activity.user_id == user_id)
                .order_by(Activity.timestamp.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_by_document(self, document_id: uuid.UUID) -> list[Activity]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Activity)
                .where(Activity.related_document_id == document_id)
                .order_by(Activity.timestamp.asc())
            )
            return list(result.scalars().all())


class ConversationRepository(BaseRepository, IConversationRepository):
    """Repository for Conversation records."""

    async def get_by_id(self, conversation_id: uuid.UUID) -> Conversation | None:
        async with self._session_factory() as session:
            return await session.get(Conversation, conversation_id)

    async def get_active(self, user_id: uuid.UUID) -> Conversation | None:
        """Return the user's open conversation with the most recent message."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.user_id == user_id, Conversation.closed.is_(False))
                .order_by(Conversation.last_message_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_or_create_active(self, user_id: uuid.UUID) -> tuple[Conversation, bool]:
        """Return the user's open conversation, inserting one if none is open.

        The partial unique index on open conversations rejects a concurrent
        second insert; the loser re-reads the winner's row.

        Returns:
            The open conversation and whether it was created by this call.

        Raises:
            IntegrityError: If no open conversation could be read or inserted.
        """
        attempt = 1
        while True:
            conversation = await self.get_active(user_id)
            if conversation is not None:
                return conversation, False
            now = utcnow()
            conversation = Conversation(user_id=user_id, started_at=now, last_message_at=now, closed=False)
            try:
                async with self._session_factory() as session, session.begin():
                    session.add(conversation)
            except IntegrityError:
                if attempt >= OPEN_CONVERSATION_ATTEMPTS:
                    raise
                attempt += 1
                continue
            return conversation, True

    async def start_new(self, user_id: uuid.UUID) -> tuple[Conversation, int]:
        """Close the user's open conversations and insert a fresh one atomically.

        Returns:
            The new conversation and the number of conversations closed.

        Raises:
            IntegrityError: If a concurrent start kept winning the insert.
        """
        attempt = 1
        while True:
            now = utcnow()
            conversation = Conversation(user_id=user_id, started_at=now, last_message_at=now, closed=False)
            try:
                async with self._session_factory() as session, session.begin():
                    result = await session.execute(
                        update(Conversation)
                        .where(Conversation.user_id == user_id, Conversation.closed.is_(False))
                        .values(closed=True)
                    )
                    session.add(conversation)
            except IntegrityError:
                if attempt >= OPEN_CONVERSATION_ATTEMPTS:
                    raise
                attempt += 1
                continue
            return conversation, result.rowcount or 0

    async def touch(self, conversation_id: uuid.UUID, last_message_at: datetime) -> Conversation | None:
        """Advance last_message_at; never moves it backwards."""
        async with self._session_factory() as session, session.begin():
            conversation = await session.get(Conversation, conversation_id, with_for_update=True)
            if conversation is None:
                return None
            if as_utc(conversation.last_message_at) < as_utc(last_message_at):
                conversation.last_message_at = last_message_at
        return conversation


class MessageRepository(BaseRepository, IMessageRepository):
    """Repository for Message records.

    Timestamps within a conversation are kept strictly increasing so a reply
    always sorts after the turn it answers.
    """

    async def create(
        self,
        conversation_id: uuid.UUID,
        sender: MessageSender,
        content: str,
        reasoning_log: list[dict] | None = None,
    ) -> Message:
        async with self._session_factory() as session, session.begin():
            latest = await session.scalar(
                select(Message.timestamp)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.timestamp.desc())
                .limit(1)
            )
            timestamp = utcnow()
            if latest is not None and as_utc(latest) >= timestamp:
                timestamp = as_utc(latest) + timedelta(microseconds=1)
            message = Message(
                conversation_id=conversation_id,
                sender=sender.value,
                content=content,
                timestamp=timestamp,
                reasoning_log=reasoning_log,
            )
            session.add(message)
        return message

    async def list_by_conversation(self, conversation_id: uuid.UUID) -> list[Message]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.timestamp.asc())
            )
            return list(result.scalars().all())


__all__ = [
    "UserRepository",
    "DocumentRepository",
    "ActivityRepository",
    "ConversationRepository",
    "MessageRepository",
]
