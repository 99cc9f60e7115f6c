"""End-to-end pipeline tests over SQLite repositories.

Documents and conversation turns run through the real orchestrator,
generators (templates and keyword fallback), notification bus and
background runner; only the Gemini client is replaced where a test needs
the model to misbehave.
"""

import asyncio
import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from lexassist.adapters.analysis_generator import AnalysisGenerator, GeminiAnalysisStrategy
from lexassist.adapters.gemini_client import GeminiClient
from lexassist.adapters.notification_bus import NotificationBus
from lexassist.adapters.notifications import DomainEventPublisher
from lexassist.adapters.repositories import (
    ActivityRepository,
    ConversationRepository,
    DocumentRepository,
    MessageRepository,
    UserRepository,
)
from lexassist.adapters.response_generator import ResponseGenerator
from lexassist.adapters.task_runner import BackgroundTaskRunner
from lexassist.core.models import Conversation, DocumentCategory, DocumentStatus, MessageSender, User
from lexassist.core.services import (
    ConversationService,
    DocumentIngestionService,
    TaskOrchestrator,
)
from lexassist.database import as_utc
from lexassist.errors import InvalidStatusTransitionError, ValidationError

PDF = "application/pdf"


class RecordingConnection:
    """Connection double that records what it was sent."""

    def __init__(self) -> None:
        self.sent: list[Any] = []

    async def send_json(self, data: Any) -> None:
        self.sent.append(data)


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def runner() -> BackgroundTaskRunner:
    return BackgroundTaskRunner()


@pytest.fixture
def garbage_client() -> GeminiClient:
    """Gemini client double whose every answer is non-JSON text."""
    client = MagicMock(spec=GeminiClient)
    client.generate = AsyncMock(return_value="As an AI I think this document is fine!!!")
    client.model = "gemini-test"
    client.is_configured = True
    return client


def _orchestrator(
    document_repository: DocumentRepository,
    activity_repository: ActivityRepository,
    user_repository: UserRepository,
    conversation_repository: ConversationRepository,
    message_repository: MessageRepository,
    bus: NotificationBus,
    runner: BackgroundTaskRunner,
    analysis_generator: AnalysisGenerator,
) -> TaskOrchestrator:
    return TaskOrchestrator(
        documents=document_repository,
        activities=activity_repository,
        users=user_repository,
        conversations=conversation_repository,
        messages=message_repository,
        analysis_generator=analysis_generator,
        response_generator=ResponseGenerator(None),
        event_publisher=DomainEventPublisher(bus),
        task_runner=runner,
    )


@pytest.fixture
def orchestrator(
    document_repository: DocumentRepository,
    activity_repository: ActivityRepository,
    user_repository: UserRepository,
    conversation_repository: ConversationRepository,
    message_repository: MessageRepository,
    bus: NotificationBus,
    runner: BackgroundTaskRunner,
) -> TaskOrchestrator:
    """Orchestrator using the template analysis strategy only."""
    return _orchestrator(
        document_repository,
        activity_repository,
        user_repository,
        conversation_repository,
        message_repository,
        bus,
        runner,
        AnalysisGenerator(None),
    )


@pytest.fixture
def ingestion(
    document_repository: DocumentRepository,
    activity_repository: ActivityRepository,
    orchestrator: TaskOrchestrator,
) -> DocumentIngestionService:
    return DocumentIngestionService(
        documents=document_repository,
        activities=activity_repository,
        orchestrator=orchestrator,
        max_upload_bytes=1024 * 1024,
        allowed_mime_types=[PDF, "image/png"],
    )


class TestDocumentPipeline:
    """Uploads through to terminal status."""

    @pytest.mark.asyncio
    async def test_forensic_upload_completes_with_analysis(
        self,
        ingestion: DocumentIngestionService,
        document_repository: DocumentRepository,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        """Scenario: a forensic upload reaches completed with a non-empty analysis."""
        document = await ingestion.ingest(user, "ledger.pdf", PDF, b"%PDF-1.4 broken", "forensic")
        assert document.status == DocumentStatus.PENDING.value

        await runner.drain()

        stored = await document_repository.get_by_id(document.id)
        assert stored.status == DocumentStatus.COMPLETED.value
        assert stored.analysis_result["analysis"]
        assert stored.analysis_result["foresight"]["risks"]

    @pytest.mark.asyncio
    async def test_invalid_category_creates_no_document(
        self,
        ingestion: DocumentIngestionService,
        document_repository: DocumentRepository,
        user: User,
    ) -> None:
        """Scenario: category "invoice" is rejected before any document exists."""
        with pytest.raises(ValidationError):
            await ingestion.ingest(user, "bill.pdf", PDF, b"%PDF-1.4", "invoice")

        assert await document_repository.list_by_user(user.id) == []

    @pytest.mark.asyncio
    async def test_model_garbage_still_completes(
        self,
        document_repository: DocumentRepository,
        activity_repository: ActivityRepository,
        user_repository: UserRepository,
        conversation_repository: ConversationRepository,
        message_repository: MessageRepository,
        bus: NotificationBus,
        runner: BackgroundTaskRunner,
        garbage_client: GeminiClient,
        user: User,
    ) -> None:
        """Scenario: non-JSON model output falls back to templates, not to failed."""
        orchestrator = _orchestrator(
            document_repository,
            activity_repository,
            user_repository,
            conversation_repository,
            message_repository,
            bus,
            runner,
            AnalysisGenerator(GeminiAnalysisStrategy(garbage_client)),
        )
        document = await document_repository.create(user.id, "contract.pdf", DocumentCategory.LEGAL, PDF, 8)

        result = await orchestrator.process_document(b"%PDF-1.4", document)

        garbage_client.generate.assert_awaited_once()
        assert result.status == DocumentStatus.COMPLETED.value
        assert result.analysis_result["analysis"]
        assert result.analysis_result["references"]

    @pytest.mark.asyncio
    async def test_back_to_back_uploads_process_independently(
        self,
        ingestion: DocumentIngestionService,
        document_repository: DocumentRepository,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        """Scenario: two uploads by the same user both complete on their own."""
        first = await ingestion.ingest(user, "a.pdf", PDF, b"%PDF-1.4 a", "tax")
        second = await ingestion.ingest(user, "b.png", "image/png", b"\x89PNG", "legal")

        await runner.drain()

        stored_first = await document_repository.get_by_id(first.id)
        stored_second = await document_repository.get_by_id(second.id)
        assert stored_first.status == DocumentStatus.COMPLETED.value
        assert stored_second.status == DocumentStatus.COMPLETED.value
        assert stored_first.category == "tax"
        assert stored_second.category == "legal"

    @pytest.mark.asyncio
    async def test_every_transition_writes_one_activity(
        self,
        ingestion: DocumentIngestionService,
        activity_repository: ActivityRepository,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        document = await ingestion.ingest(user, "ledger.pdf", PDF, b"%PDF-1.4", "forensic")
        await runner.drain()

        activities = await activity_repository.list_by_document(document.id)
        transitions = [a.details.get("transition") for a in activities if a.details.get("transition")]
        assert transitions == ["pending", "processing", "completed"]
        assert [a.type for a in activities][-1] == "foresight"

    @pytest.mark.asyncio
    async def test_owner_receives_updates_and_others_do_not(
        self,
        ingestion: DocumentIngestionService,
        user_repository: UserRepository,
        bus: NotificationBus,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        other = await user_repository.create(username="bob", email="bob@example.com")
        owner_connection, other_connection = RecordingConnection(), RecordingConnection()
        await bus.authenticate(await bus.register(owner_connection), user.id)
        await bus.authenticate(await bus.register(other_connection), other.id)

        document = await ingestion.ingest(user, "ledger.pdf", PDF, b"%PDF-1.4", "forensic")
        await runner.drain()

        statuses = [event["document"]["status"] for event in owner_connection.sent]
        assert statuses == ["processing", "completed"]
        assert owner_connection.sent[-1]["document"]["id"] == str(document.id)
        assert owner_connection.sent[-1]["document"]["analysis_result"]["analysis"]
        assert other_connection.sent == []

    @pytest.mark.asyncio
    async def test_indian_owner_gets_indian_references(
        self,
        ingestion: DocumentIngestionService,
        document_repository: DocumentRepository,
        runner: BackgroundTaskRunner,
        indian_user: User,
    ) -> None:
        document = await ingestion.ingest(indian_user, "itr.pdf", PDF, b"%PDF-1.4", "tax")
        await runner.drain()

        stored = await document_repository.get_by_id(document.id)
        titles = [reference["title"] for reference in stored.analysis_result["references"]]
        assert "Goods and Services Tax (GST) Act, 2017" in titles


class TestDocumentRepositoryTransitions:
    """Status changes are forward-only at the storage layer."""

    @pytest.mark.asyncio
    async def test_completed_document_cannot_move_back(
        self, document_repository: DocumentRepository, user: User
    ) -> None:
        document = await document_repository.create(user.id, "a.pdf", DocumentCategory.TAX, PDF, 1)
        await document_repository.transition_status(document.id, DocumentStatus.PROCESSING)
        await document_repository.transition_status(
            document.id, DocumentStatus.COMPLETED, analysis_result={"analysis": ["ok"]}
        )

        with pytest.raises(InvalidStatusTransitionError):
            await document_repository.transition_status(document.id, DocumentStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_analysis_result_only_stored_on_completion(
        self, document_repository: DocumentRepository, user: User
    ) -> None:
        document = await document_repository.create(user.id, "a.pdf", DocumentCategory.TAX, PDF, 1)

        processing = await document_repository.transition_status(
            document.id, DocumentStatus.PROCESSING, analysis_result={"analysis": ["early"]}
        )
        failed = await document_repository.transition_status(document.id, DocumentStatus.FAILED)

        assert processing.analysis_result is None
        assert failed.analysis_result is None

    @pytest.mark.asyncio
    async def test_list_by_user_filters_by_category_newest_first(
        self, document_repository: DocumentRepository, user: User
    ) -> None:
        older = await document_repository.create(user.id, "old.pdf", DocumentCategory.TAX, PDF, 1)
        newer = await document_repository.create(user.id, "new.pdf", DocumentCategory.TAX, PDF, 1)
        await document_repository.create(user.id, "other.pdf", DocumentCategory.LEGAL, PDF, 1)

        documents = await document_repository.list_by_user(user.id, DocumentCategory.TAX)

        assert [d.id for d in documents] == [newer.id, older.id]


class TestConversationPipeline:
    """Chat turns over real repositories."""

    @pytest.fixture
    def conversations(
        self,
        conversation_repository: ConversationRepository,
        message_repository: MessageRepository,
        orchestrator: TaskOrchestrator,
    ) -> ConversationService:
        return ConversationService(conversation_repository, message_repository, orchestrator)

    @pytest.mark.asyncio
    async def test_tax_question_gets_one_reply_with_reasoning(
        self,
        conversations: ConversationService,
        message_repository: MessageRepository,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        """Scenario: one assistant message with a non-empty reasoning log."""
        conversation = await conversations.get_or_create_active(user)

        message = await conversations.send_message(user, conversation.id, "What are my tax deductions?")
        await runner.drain()

        messages = await message_repository.list_by_conversation(conversation.id)
        assert [m.id for m in messages][0] == message.id
        replies = [m for m in messages if m.sender == MessageSender.ASSISTANT.value]
        assert len(replies) == 1
        assert replies[0].reasoning_log
        assert "tax" in replies[0].content.lower()

    @pytest.mark.asyncio
    async def test_message_timestamps_strictly_increase(
        self,
        conversations: ConversationService,
        conversation_repository: ConversationRepository,
        message_repository: MessageRepository,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        conversation = await conversations.get_or_create_active(user)
        for content in ("Hello", "Is my contract legal?", "Any audit risk?"):
            await conversations.send_message(user, conversation.id, content)
            await runner.drain()

        messages = await message_repository.list_by_conversation(conversation.id)
        timestamps = [as_utc(m.timestamp) for m in messages]
        assert len(messages) == 6
        assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))
        refreshed = await conversation_repository.get_by_id(conversation.id)
        assert as_utc(refreshed.last_message_at) == timestamps[-1]

    @pytest.mark.asyncio
    async def test_active_conversation_is_reused_until_a_new_one_starts(
        self, conversations: ConversationService, user: User
    ) -> None:
        first = await conversations.get_or_create_active(user)
        again = await conversations.get_or_create_active(user)
        fresh = await conversations.start_new(user)
        active = await conversations.get_or_create_active(user)

        assert again.id == first.id
        assert fresh.id != first.id
        assert active.id == fresh.id

    @staticmethod
    async def _open_count(session_factory: async_sessionmaker, user: User) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Conversation)
                .where(Conversation.user_id == user.id, Conversation.closed.is_(False))
            )
            return result.scalar_one()

    @pytest.mark.asyncio
    async def test_concurrent_lookups_share_one_open_conversation(
        self, conversations: ConversationService, session_factory: async_sessionmaker, user: User
    ) -> None:
        first, second = await asyncio.gather(
            conversations.get_or_create_active(user),
            conversations.get_or_create_active(user),
        )

        assert first.id == second.id
        assert await self._open_count(session_factory, user) == 1

    @pytest.mark.asyncio
    async def test_concurrent_new_conversations_leave_one_open(
        self, conversations: ConversationService, session_factory: async_sessionmaker, user: User
    ) -> None:
        await conversations.get_or_create_active(user)

        created = await asyncio.gather(conversations.start_new(user), conversations.start_new(user))
        active = await conversations.get_or_create_active(user)

        assert await self._open_count(session_factory, user) == 1
        assert active.id in {conversation.id for conversation in created}

    @pytest.mark.asyncio
    async def test_reply_is_pushed_to_owner(
        self,
        conversations: ConversationService,
        bus: NotificationBus,
        runner: BackgroundTaskRunner,
        user: User,
    ) -> None:
        connection = RecordingConnection()
        await bus.authenticate(await bus.register(connection), user.id)
        conversation = await conversations.get_or_create_active(user)

        await conversations.send_message(user, conversation.id, "Hello")
        await runner.drain()

        assert len(connection.sent) == 1
        event = connection.sent[0]
        assert event["type"] == "message_update"
        assert event["conversationId"] == str(conversation.id)
        assert event["message"]["sender"] == "assistant"
        assert uuid.UUID(event["message"]["id"])
