"""Business logic services for lexassist.

Services contain all domain logic. They:
  - Accept dependencies via constructor injection (repositories, generators, publishers)
  - Orchestrate repository calls and event publishing
  - Raise domain errors from lexassist.errors
  - Are framework-agnostic (no FastAPI, no direct DB access)

Only the TaskOrchestrator changes document status or appends messages to a
conversation; the other services validate input and delegate to it.
"""

import asyncio
import uuid

from lexassist.adapters.text_extraction import extract_text
from lexassist.core.categories import CategoryProfile, profile_for, resolve_category
from lexassist.core.interfaces import (
    IActivityRepository,
    IAnalysisGeneratorProtocol,
    IConversationRepository,
    IDocumentRepository,
    IEventPublisherProtocol,
    IMessageRepository,
    IResponseGeneratorProtocol,
    ITaskRunnerProtocol,
    IUserRepository,
)
from lexassist.core.models import (
    Activity,
    ActivityType,
    Conversation,
    Document,
    DocumentStatus,
    Message,
    MessageSender,
    User,
)
from lexassist.errors import (
    ForbiddenError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from lexassist.observability import get_logger

logger = get_logger(__name__)

APOLOGY_MESSAGE = "I apologize, but I encountered an error processing your request. Please try again."

FAIL_TRANSITION_ATTEMPTS = 2


def preview(content: str, limit: int = 60) -> str:
    """Shorten content for activity descriptions, marking the cut with '...'."""
    if len(content) <= limit:
        return content
    return content[: limit - 3] + "..."


class TaskOrchestrator:
    """Drives documents through their lifecycle and answers conversation turns.

    Every document run ends in a persisted terminal status and every user
    message is answered by exactly one assistant message, whatever the
    generators do. Each milestone is recorded as an Activity and pushed to
    the owner's live connections.

    Args:
        documents: Document repository; the only path for status changes.
        activities: Append-only activity trail.
        users: User lookups for jurisdiction resolution.
        conversations: Conversation repository.
        messages: Message repository.
        analysis_generator: Produces AnalysisResults for documents.
        response_generator: Produces assistant replies.
        event_publisher: Pushes document and message updates.
        task_runner: Runs reply jobs and document runs in the background.
        default_jurisdiction: Used when the owner has no jurisdiction set.
        chat_preview_length: Maximum length of chat activity descriptions.
    """

    def __init__(
        self,
        documents: IDocumentRepository,
        activities: IActivityRepository,
        users: IUserRepository,
        conversations: IConversationRepository,
        messages: IMessageRepository,
        analysis_generator: IAnalysisGeneratorProtocol,
        response_generator: IResponseGeneratorProtocol,
        event_publisher: IEventPublisherProtocol,
        task_runner: ITaskRunnerProtocol,
        default_jurisdiction: str = "USA",
        chat_preview_length: int = 60,
    ) -> None:
        self._documents = documents
        self._activities = activities
        self._users = users
        self._conversations = conversations
        self._messages = messages
        self._analysis_generator = analysis_generator
        self._response_generator = response_generator
        self._event_publisher = event_publisher
        self._task_runner = task_runner
        self._default_jurisdiction = default_jurisdiction
        self._chat_preview_length = chat_preview_length
        self._in_flight: set[uuid.UUID] = set()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def schedule_processing(self, raw_bytes: bytes, document: Document) -> None:
        """Submit a document run to the background runner without waiting for it."""
        self._task_runner.submit(self.process_document, raw_bytes, document, name=f"document-{document.id}")

    async def process_document(self, raw_bytes: bytes, document: Document) -> Document | None:
        """Run the analysis lifecycle for one document.

        pending → processing → completed | failed. A run that cannot start
        because another run holds the document returns None and changes
        nothing.

        Args:
            raw_bytes: The uploaded payload.
            document: The pending Document created at upload.

        Returns:
            The Document in its terminal state, or None if the run was refused.
        """
        if document.id in self._in_flight:
            logger.warning("Refusing concurrent run for document", document_id=str(document.id))
            return None

        self._in_flight.add(document.id)
        try:
            return await self._run_document(raw_bytes, document)
        finally:
            self._in_flight.discard(document.id)

    async def _run_document(self, raw_bytes: bytes, document: Document) -> Document | None:
        category = resolve_category(document.category)
        if category is None:
            logger.error(
                "Document has an unrecognised category",
                document_id=str(document.id),
                category=document.category,
            )
            return await self._fail_document(document, None)

        profile = profile_for(category)
        try:
            processing = await self._documents.transition_status(document.id, DocumentStatus.PROCESSING)
        except InvalidStatusTransitionError:
            logger.warning(
                "Document is no longer pending, skipping run",
                document_id=str(document.id),
                status=document.status,
            )
            return None

        logger.info(
            "Document processing started",
            document_id=str(document.id),
            user_id=str(document.user_id),
            category=category.value,
        )
        try:
            await self._record_activity(
                processing,
                ActivityType(category.value),
                title=f"{profile.label} Started",
                description=f'Processing started for "{processing.filename}"',
                status="processing",
                transition=DocumentStatus.PROCESSING,
            )
            await self._notify_document(processing)

            jurisdiction = await self._resolve_jurisdiction(processing.user_id)
            text = await asyncio.to_thread(
                extract_text, raw_bytes, processing.content_type, processing.filename, category.value
            )
            result = await self._analysis_generator.generate(text, category, jurisdiction)
            completed = await self._documents.transition_status(
                processing.id, DocumentStatus.COMPLETED, analysis_result=result.to_payload()
            )
        except Exception as exc:
            logger.error(
                "Document processing failed",
                document_id=str(processing.id),
                category=category.value,
                error=repr(exc),
            )
            return await self._fail_document(processing, profile)

        await self._record_activity(
            completed,
            ActivityType(category.value),
            title=f"{profile.label} Completed",
            description=f'Analysis completed for "{completed.filename}"',
            status="completed",
            transition=DocumentStatus.COMPLETED,
        )
        await self._record_activity(
            completed,
            ActivityType.FORESIGHT,
            title="Foresight Alert",
            description=profile.insight_alert,
            status="action",
        )
        await self._notify_document(completed)
        logger.info(
            "Document processing completed",
            document_id=str(completed.id),
            category=category.value,
            paragraphs=len(result.analysis),
        )
        return completed

    async def _fail_document(self, document: Document, profile: CategoryProfile | None) -> Document:
        failed = await self._mark_failed(document)
        await self._record_activity(
            failed,
            ActivityType(profile.category.value) if profile else ActivityType.UPLOAD,
            title="Analysis Failed",
            description=f'Processing failed for "{failed.filename}"',
            status="failed",
            transition=DocumentStatus.FAILED,
        )
        await self._notify_document(failed)
        return failed

    async def _mark_failed(self, document: Document) -> Document:
        """Persist the failed status, retrying once on a storage error.

        Raises:
            InvalidStatusTransitionError: If the document already left processing.
            Exception: The storage error, once the retry is exhausted.
        """
        attempt = 1
        while True:
            try:
                return await self._documents.transition_status(document.id, DocumentStatus.FAILED)
            except InvalidStatusTransitionError:
                raise
            except Exception as exc:
                logger.error(
                    "Could not mark document failed",
                    document_id=str(document.id),
                    attempt=attempt,
                    error=repr(exc),
                )
                if attempt >= FAIL_TRANSITION_ATTEMPTS:
                    raise
                attempt += 1

    async def _record_activity(
        self,
        document: Document,
        activity_type: ActivityType,
        title: str,
        description: str,
        status: str,
        transition: DocumentStatus | None = None,
    ) -> Activity:
        details = {"title": title, "description": description, "status": status}
        if transition is not None:
            details["transition"] = transition.value
        return await self._activities.create(
            user_id=document.user_id,
            activity_type=activity_type,
            details=details,
            related_document_id=document.id,
        )

    async def _notify_document(self, document: Document) -> None:
        try:
            await self._event_publisher.publish_document_update(document)
        except Exception as exc:
            logger.warning("Document notification failed", document_id=str(document.id), reason=str(exc))

    async def _resolve_jurisdiction(self, user_id: uuid.UUID) -> str:
        user = await self._users.get_by_id(user_id)
        if user is None or not user.jurisdiction:
            return self._default_jurisdiction
        return user.jurisdiction

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def handle_turn(self, conversation: Conversation, content: str) -> Message:
        """Store a user message and schedule the assistant's reply.

        Args:
            conversation: Conversation the message belongs to.
            content: Text of the user's message.

        Returns:
            The stored user Message. The reply arrives later as a
            message_update event.
        """
        message = await self._messages.create(conversation.id, MessageSender.USER, content)
        await self._conversations.touch(conversation.id, message.timestamp)
        await self._activities.create(
            user_id=conversation.user_id,
            activity_type=ActivityType.CHAT,
            details={
                "title": "LeXAssist Conversation",
                "description": preview(content, self._chat_preview_length),
                "status": "completed",
            },
        )
        logger.info(
            "Conversation turn accepted",
            conversation_id=str(conversation.id),
            message_id=str(message.id),
            user_id=str(conversation.user_id),
        )
        self._task_runner.submit(self._reply, conversation, message, name=f"reply-{message.id}")
        return message

    async def _reply(self, conversation: Conversation, user_message: Message) -> Message:
        content: str = APOLOGY_MESSAGE
        reasoning_log: list[dict] | None = None
        try:
            history = await self._messages.list_by_conversation(conversation.id)
            prior: list[Message] = []
            for message in history:
                if message.id == user_message.id:
                    break
                prior.append(message)
            jurisdiction = await self._resolve_jurisdiction(conversation.user_id)
            reply = await self._response_generator.generate(prior, user_message.content, jurisdiction)
            if reply.content.strip():
                content = reply.content
                reasoning_log = reply.reasoning_payload()
            else:
                logger.warning("Response generator returned an empty reply", conversation_id=str(conversation.id))
        except Exception as exc:
            logger.error(
                "Reply generation failed, sending apology",
                conversation_id=str(conversation.id),
                message_id=str(user_message.id),
                error=repr(exc),
            )

        assistant = await self._messages.create(
            conversation.id, MessageSender.ASSISTANT, content, reasoning_log
        )
        await self._conversations.touch(conversation.id, assistant.timestamp)
        try:
            await self._event_publisher.publish_message_update(conversation.user_id, assistant)
        except Exception as exc:
            logger.warning("Message notification failed", message_id=str(assistant.id), reason=str(exc))
        return assistant


class DocumentIngestionService:
    """Validates uploads and hands accepted documents to the orchestrator.

    Rejections happen before any Document record is created.

    Args:
        documents: Document repository.
        activities: Append-only activity trail.
        orchestrator: Runs the document lifecycle in the background.
        max_upload_bytes: Largest accepted payload.
        allowed_mime_types: Accepted MIME types.
    """

    def __init__(
        self,
        documents: IDocumentRepository,
        activities: IActivityRepository,
        orchestrator: TaskOrchestrator,
        max_upload_bytes: int,
        allowed_mime_types: list[str],
    ) -> None:
        self._documents = documents
        self._activities = activities
        self._orchestrator = orchestrator
        self._max_upload_bytes = max_upload_bytes
        self._allowed_mime_types = frozenset(mime.lower() for mime in allowed_mime_types)

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    async def ingest(
        self,
        user: User,
        filename: str | None,
        content_type: str | None,
        raw_bytes: bytes | None,
        category: str | None,
    ) -> Document:
        """Accept an upload and schedule its analysis.

        Args:
            user: The authenticated uploader.
            filename: Original filename; None when no file was sent.
            content_type: MIME type reported by the client.
            raw_bytes: File content; None when no file was sent.
            category: Requested category (forensic, tax, legal).

        Returns:
            The created Document in pending status.

        Raises:
            ValidationError: On a missing file, a missing or unknown category,
                an oversized payload or a disallowed MIME type.
        """
        if not filename or raw_bytes is None:
            raise ValidationError("No file uploaded")
        if not raw_bytes:
            raise ValidationError("Uploaded file is empty")
        if not category:
            raise ValidationError("Category is required")
        resolved = resolve_category(category.strip().lower())
        if resolved is None:
            raise ValidationError(f"Invalid category '{category}'. Expected one of: forensic, tax, legal")
        if len(raw_bytes) > self._max_upload_bytes:
            raise ValidationError(
                f"File exceeds the maximum upload size of {self._max_upload_bytes} bytes"
            )
        mime = (content_type or "").split(";", 1)[0].strip().lower()
        if mime not in self._allowed_mime_types:
            raise ValidationError(f"File type '{content_type}' is not supported")

        document = await self._documents.create(
            user_id=user.id,
            filename=filename,
            category=resolved,
            content_type=mime,
            file_size=len(raw_bytes),
        )
        await self._activities.create(
            user_id=user.id,
            activity_type=ActivityType.UPLOAD,
            details={
                "title": "Document Uploaded",
                "description": f'You uploaded "{filename}" for {resolved.value} analysis',
                "status": "completed",
                "transition": DocumentStatus.PENDING.value,
            },
            related_document_id=document.id,
        )
        logger.info(
            "Document accepted",
            document_id=str(document.id),
            user_id=str(user.id),
            category=resolved.value,
            file_size=len(raw_bytes),
        )

        self._orchestrator.schedule_processing(raw_bytes, document)
        return document


class DocumentQueryService:
    """Read access to a user's documents.

    Args:
        documents: Document repository.
    """

    def __init__(self, documents: IDocumentRepository) -> None:
        self._documents = documents

    async def get_document(self, user: User, document_id: uuid.UUID) -> Document:
        """Return one document owned by the caller.

        Raises:
            NotFoundError: If no document exists with the given ID.
            ForbiddenError: If the document belongs to another user.
        """
        document = await self._documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        if document.user_id != user.id:
            raise ForbiddenError("You do not have access to this document")
        return document

    async def list_documents(self, user: User, category: str | None = None) -> list[Document]:
        """List the caller's documents, newest first.

        Raises:
            ValidationError: If category is given but not recognised.
        """
        resolved = None
        if category:
            resolved = resolve_category(category.strip().lower())
            if resolved is None:
                raise ValidationError(f"Invalid category '{category}'")
        return await self._documents.list_by_user(user.id, resolved)


class ActivityService:
    """Read access to the activity trail."""

    def __init__(self, activities: IActivityRepository, default_limit: int = 10) -> None:
        self._activities = activities
        self._default_limit = default_limit

    async def list_recent(self, user: User, limit: int | None = None) -> list[Activity]:
        return await self._activities.list_by_user(user.id, limit or self._default_limit)


class ConversationService:
    """Conversation lookup and message intake.

    Args:
        conversations: Conversation repository.
        messages: Message repository.
        orchestrator: Stores turns and schedules replies.
    """

    def __init__(
        self,
        conversations: IConversationRepository,
        messages: IMessageRepository,
        orchestrator: TaskOrchestrator,
    ) -> None:
        self._conversations = conversations
        self._messages = messages
        self._orchestrator = orchestrator

    async def get_or_create_active(self, user: User) -> Conversation:
        """Return the caller's open conversation, starting one if none is open."""
        conversation, created = await self._conversations.get_or_create_active(user.id)
        if created:
            logger.info("Conversation started", conversation_id=str(conversation.id), user_id=str(user.id))
        return conversation

    async def start_new(self, user: User) -> Conversation:
        """Close the caller's open conversation and start a fresh one."""
        conversation, closed = await self._conversations.start_new(user.id)
        logger.info(
            "Conversation started",
            conversation_id=str(conversation.id),
            user_id=str(user.id),
            closed_previous=closed,
        )
        return conversation

    async def get_conversation(self, user: User, conversation_id: uuid.UUID) -> Conversation:
        """Return a conversation owned by the caller.

        Raises:
            NotFoundError: If no conversation exists with the given ID.
            ForbiddenError: If the conversation belongs to another user.
        """
        conversation = await self._conversations.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        if conversation.user_id != user.id:
            raise ForbiddenError("You do not have access to this conversation")
        return conversation

    async def list_messages(self, user: User, conversation_id: uuid.UUID) -> list[Message]:
        conversation = await self.get_conversation(user, conversation_id)
        return await self._messages.list_by_conversation(conversation.id)

    async def send_message(self, user: User, conversation_id: uuid.UUID, content: str) -> Message:
        """Accept a user message; the reply is produced in the background.

        Args:
            user: The authenticated sender.
            conversation_id: Target conversation.
            content: Message text.

        Returns:
            The stored user Message.

        Raises:
            ValidationError: If content is blank or the conversation is closed.
            NotFoundError: If the conversation does not exist.
            ForbiddenError: If the conversation belongs to another user.
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required")
        conversation = await self.get_conversation(user, conversation_id)
        if conversation.closed:
            raise ValidationError("Conversation is closed")
        return await self._orchestrator.handle_turn(conversation, content)
