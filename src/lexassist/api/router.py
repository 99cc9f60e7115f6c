"""API router for lexassist.

All endpoints are registered here and included in main.py under /api/v1.
Routes delegate all logic to the service layer; there is no business logic
in routes. Services are built once at startup and read from app.state.
"""

import uuid

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile

from lexassist.api.schemas import (
    ActivityResponse,
    ConversationResponse,
    DocumentListResponse,
    DocumentResponse,
    MessageCreateRequest,
    MessageListResponse,
    MessageResponse,
)
from lexassist.core.models import User
from lexassist.core.services import (
    ActivityService,
    ConversationService,
    DocumentIngestionService,
    DocumentQueryService,
)
from lexassist.errors import UnauthorizedError

router = APIRouter(tags=["lexassist"])


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    x_user_id: str | None = Header(default=None),
) -> User:
    """Resolve the caller from the X-User-Id header.

    Stands in for the external session layer, which is expected to set the
    header for authenticated requests.

    Raises:
        UnauthorizedError: If the header is missing, malformed or names an unknown user.
    """
    if not x_user_id:
        raise UnauthorizedError("Authentication required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError as exc:
        raise UnauthorizedError("Authentication required") from exc
    user = await request.app.state.user_repository.get_by_id(user_id)
    if user is None:
        raise UnauthorizedError("Authentication required")
    return user


def get_ingestion_service(request: Request) -> DocumentIngestionService:
    return request.app.state.ingestion_service


def get_document_query_service(request: Request) -> DocumentQueryService:
    return request.app.state.document_query_service


def get_activity_service(request: Request) -> ActivityService:
    return request.app.state.activity_service


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversation_service


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post("/documents/upload", response_model=DocumentResponse, status_code=201)
async def upload_document(
    file: UploadFile | None = File(default=None),
    category: str | None = Form(default=None),
    user: User = Depends(get_current_user),
    service: DocumentIngestionService = Depends(get_ingestion_service),
) -> DocumentResponse:
    """Upload a document for forensic, tax or legal analysis.

    Returns the pending document immediately; progress arrives as
    document_update events or by polling GET /documents/{id}.
    """
    # One byte past the limit is enough for ingest to reject the payload.
    raw_bytes = await file.read(service.max_upload_bytes + 1) if file is not None else None
    document = await service.ingest(
        user=user,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        raw_bytes=raw_bytes,
        category=category,
    )
    return DocumentResponse.model_validate(document)


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    category: str | None = Query(default=None, description="Filter by category"),
    user: User = Depends(get_current_user),
    service: DocumentQueryService = Depends(get_document_query_service),
) -> DocumentListResponse:
    """List the caller's documents, newest first."""
    documents = await service.list_documents(user, category)
    return DocumentListResponse(
        items=[DocumentResponse.model_validate(document) for document in documents],
        total=len(documents),
    )


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: DocumentQueryService = Depends(get_document_query_service),
) -> DocumentResponse:
    """Return a document with its status and, once completed, its analysis."""
    document = await service.get_document(user, document_id)
    return DocumentResponse.model_validate(document)


# ---------------------------------------------------------------------------
# Activity endpoints
# ---------------------------------------------------------------------------


@router.get("/activities", response_model=list[ActivityResponse])
async def list_activities(
    limit: int | None = Query(default=None, ge=1, le=100, description="Maximum entries to return"),
    user: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> list[ActivityResponse]:
    """Return the caller's most recent activities, newest first."""
    activities = await service.list_recent(user, limit)
    return [ActivityResponse.model_validate(activity) for activity in activities]


# ---------------------------------------------------------------------------
# Conversation endpoints
# ---------------------------------------------------------------------------


@router.get("/conversations/active", response_model=ConversationResponse)
async def get_active_conversation(
    user: User = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """Return the caller's open conversation, creating one if needed."""
    conversation = await service.get_or_create_active(user)
    return ConversationResponse.model_validate(conversation)


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
async def start_conversation(
    user: User = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """Close the caller's open conversation and start a new one."""
    conversation = await service.start_new(user)
    return ConversationResponse.model_validate(conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> MessageListResponse:
    """Return a conversation's messages in chronological order."""
    messages = await service.list_messages(user, conversation_id)
    return MessageListResponse(
        items=[MessageResponse.model_validate(message) for message in messages],
        total=len(messages),
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=202,
)
async def send_message(
    conversation_id: uuid.UUID,
    request: MessageCreateRequest,
    user: User = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> MessageResponse:
    """Send a message to the assistant.

    Returns the stored user message; the reply is delivered as a
    message_update event and appears in the message list.
    """
    message = await service.send_message(user, conversation_id, request.content)
    return MessageResponse.model_validate(message)
