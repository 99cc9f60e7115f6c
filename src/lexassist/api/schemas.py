"""Pydantic request and response schemas for the lexassist API.

All API inputs and outputs use Pydantic models, never raw dicts. Field names
match the document and message bodies of real-time events.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Document Schemas
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """Response schema for an uploaded document and its analysis."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(description="Unique document identifier")
    user_id: uuid.UUID = Field(description="Owning user identifier")
    filename: str = Field(description="Original filename as uploaded")
    category: str = Field(description="Analysis category (forensic, tax, legal)")
    status: str = Field(description="Lifecycle status (pending, processing, completed, failed)")
    upload_date: datetime = Field(description="When the document was uploaded")
    content_type: str | None = Field(default=None, description="MIME type reported at upload")
    file_size: int = Field(default=0, description="Payload size in bytes")
    analysis_result: dict | None = Field(
        default=None, description="Analysis payload; present only when status is completed"
    )


class DocumentListResponse(BaseModel):
    """Response schema for a user's documents, newest first."""

    items: list[DocumentResponse] = Field(description="Documents of the current user")
    total: int = Field(description="Number of documents returned")


# ---------------------------------------------------------------------------
# Activity Schemas
# ---------------------------------------------------------------------------


class ActivityResponse(BaseModel):
    """Response schema for one activity trail entry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(description="Unique activity identifier")
    user_id: uuid.UUID = Field(description="Owning user identifier")
    type: str = Field(description="Activity type (upload, forensic, tax, legal, chat, foresight, login)")
    timestamp: datetime = Field(description="When the activity was recorded")
    details: dict = Field(description="Title, description, status and optional transition")
    related_document_id: uuid.UUID | None = Field(default=None, description="Document the activity refers to")


# ---------------------------------------------------------------------------
# Conversation Schemas
# ---------------------------------------------------------------------------


class ConversationResponse(BaseModel):
    """Response schema for a conversation thread."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(description="Unique conversation identifier")
    user_id: uuid.UUID = Field(description="Owning user identifier")
    started_at: datetime = Field(description="When the conversation started")
    last_message_at: datetime = Field(description="Timestamp of the latest message")
    closed: bool = Field(description="Whether the conversation has been closed")


class MessageCreateRequest(BaseModel):
    """Request body for POST /api/v1/conversations/{id}/messages."""

    content: str = Field(min_length=1, max_length=10000, description="Text of the user's message")


class MessageResponse(BaseModel):
    """Response schema for a conversation message."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(description="Unique message identifier")
    conversation_id: uuid.UUID = Field(description="Conversation the message belongs to")
    sender: str = Field(description="Author of the message (user, assistant)")
    content: str = Field(description="Message text")
    timestamp: datetime = Field(description="When the message was stored")
    reasoning_log: list[dict] | None = Field(
        default=None, description="Reasoning steps attached to assistant replies"
    )


class MessageListResponse(BaseModel):
    """Response schema for a conversation's messages in chronological order."""

    items: list[MessageResponse] = Field(description="Messages, oldest first")
    total: int = Field(description="Number of messages returned")
