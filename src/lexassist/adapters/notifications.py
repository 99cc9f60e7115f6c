"""Real-time event publishing for lexassist.

Defines the events pushed to live clients and provides a typed publisher
over the NotificationBus. Events are JSON objects with a "type" field; the
document and message bodies carry the same fields as the REST responses.
"""

import uuid

from lexassist.adapters.notification_bus import NotificationBus
from lexassist.core.interfaces import IEventPublisherProtocol
from lexassist.core.models import Document, Message
from lexassist.database import as_utc
from lexassist.observability import get_logger

logger = get_logger(__name__)

DOCUMENT_UPDATE = "document_update"
MESSAGE_UPDATE = "message_update"


def document_body(document: Document) -> dict:
    return {
        "id": str(document.id),
        "user_id": str(document.user_id),
        "filename": document.filename,
        "category": document.category,
        "status": document.status,
        "upload_date": as_utc(document.upload_date).isoformat(),
        "content_type": document.content_type,
        "file_size": document.file_size,
        "analysis_result": document.analysis_result,
    }


def message_body(message: Message) -> dict:
    return {
        "id": str(message.id),
        "conversation_id": str(message.conversation_id),
        "sender": message.sender,
        "content": message.content,
        "timestamp": as_utc(message.timestamp).isoformat(),
        "reasoning_log": message.reasoning_log,
    }


class DomainEventPublisher(IEventPublisherProtocol):
    """Publisher for lexassist domain events.

    Args:
        bus: The NotificationBus holding the live connections.
    """

    def __init__(self, bus: NotificationBus) -> None:
        self._bus = bus

    async def publish_document_update(self, document: Document) -> int:
        """Publish a document_update event to the document's owner.

        Sent on every status change, carrying the document as stored after
        the change (including analysis_result once completed).

        Args:
            document: The refreshed Document record.

        Returns:
            Number of connections the event reached.
        """
        event = {
            "type": DOCUMENT_UPDATE,
            "document": document_body(document),
        }
        delivered = await self._bus.publish(document.user_id, event)
        logger.info(
            "Published document_update event",
            document_id=str(document.id),
            user_id=str(document.user_id),
            status=document.status,
            delivered=delivered,
        )
        return delivered

    async def publish_message_update(self, user_id: uuid.UUID, message: Message) -> int:
        """Publish a message_update event to the conversation's owner.

        Args:
            user_id: Owner of the conversation.
            message: The newly stored Message.

        Returns:
            Number of connections the event reached.
        """
        event = {
            "type": MESSAGE_UPDATE,
            "conversationId": str(message.conversation_id),
            "message": message_body(message),
        }
        delivered = await self._bus.publish(user_id, event)
        logger.info(
            "Published message_update event",
            conversation_id=str(message.conversation_id),
            message_id=str(message.id),
            user_id=str(user_id),
            delivered=delivered,
        )
        return delivered
