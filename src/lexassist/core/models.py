"""SQLAlchemy ORM models for lexassist.

Every table uses a UUID primary key. JSON payload columns use the generic
JSON type so the same mappings run on PostgreSQL and SQLite.

Table naming convention: lex_{table_name}
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from lexassist.database import Base, utcnow


class DocumentCategory(str, Enum):
    """Fixed classification of a document; selects the analysis strategy."""

    FORENSIC = "forensic"
    TAX = "tax"
    LEGAL = "legal"


class DocumentStatus(str, Enum):
    """Document lifecycle states. See lexassist.core.state for transitions."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ActivityType(str, Enum):
    """Kinds of entries in the per-user activity trail."""

    UPLOAD = "upload"
    FORENSIC = "forensic"
    TAX = "tax"
    LEGAL = "legal"
    CHAT = "chat"
    FORESIGHT = "foresight"
    LOGIN = "login"


class MessageSender(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


class User(Base):
    """A registered user. Owns documents, activities and conversations.

    Table: lex_users
    """

    __tablename__ = "lex_users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    jurisdiction: Mapped[str | None] = mapped_column(String(50), nullable=True, default="USA")


class Document(Base):
    """An uploaded document and, once completed, its analysis result.

    status only moves forward (pending → processing → completed | failed)
    and analysis_result is set exactly when status is completed.

    Table: lex_documents
    """

    __tablename__ = "lex_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value
    )  # pending, processing, completed, failed
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    analysis_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)


class Activity(Base):
    """Append-only audit entry describing a lifecycle milestone.

    Table: lex_activities
    """

    __tablename__ = "lex_activities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)  # title, description, status, transition
    related_document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)


class Conversation(Base):
    """A chat thread with the assistant. At most one open per user.

    Table: lex_conversations
    """

    __tablename__ = "lex_conversations"
    __table_args__ = (
        Index(
            "uq_lex_conversations_open_user",
            "user_id",
            unique=True,
            postgresql_where=text("closed = false"),
            sqlite_where=text("closed = 0"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Message(Base):
    """A single conversation turn, optionally carrying a reasoning log.

    Table: lex_messages
    """

    __tablename__ = "lex_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    sender: Mapped[str] = mapped_column(String(20), nullable=False)  # user, assistant
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    reasoning_log: Mapped[list | None] = mapped_column(JSON, nullable=True)


__all__ = [
    "DocumentCategory",
    "DocumentStatus",
    "ActivityType",
    "MessageSender",
    "User",
    "Document",
    "Activity",
    "Conversation",
    "Message",
]
