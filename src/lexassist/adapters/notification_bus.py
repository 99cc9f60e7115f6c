"""In-process registry of live connections with per-user fan-out.

Connections register anonymously and become addressable only after an
authentication handshake binds them to a user id. The binding is set once.
Delivery is best effort and at most once; ordering is kept per connection.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from lexassist.observability import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LiveConnection(Protocol):
    """A duplex connection that can carry JSON messages to a client."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class RegisteredConnection:
    """Registry entry for one live connection."""

    connection: LiveConnection
    user_id: uuid.UUID | None = None
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class NotificationBus:
    """Tracks live connections and publishes events to a user's connections."""

    def __init__(self) -> None:
        self._connections: dict[str, RegisteredConnection] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: LiveConnection) -> str:
        """Add an unauthenticated connection and return its id."""
        connection_id = uuid.uuid4().hex
        async with self._lock:
            self._connections[connection_id] = RegisteredConnection(connection=connection)
        logger.debug("Connection registered", connection_id=connection_id)
        return connection_id

    async def authenticate(self, connection_id: str, user_id: uuid.UUID) -> bool:
        """Bind a connection to a user.

        Args:
            connection_id: Id returned by register().
            user_id: User the connection belongs to.

        Returns:
            True if the connection is bound to user_id after the call. A
            connection already bound to another user keeps its first binding.
        """
        async with self._lock:
            entry = self._connections.get(connection_id)
            if entry is None:
                return False
            if entry.user_id is None:
                entry.user_id = user_id
                logger.info("Connection authenticated", connection_id=connection_id, user_id=str(user_id))
            elif entry.user_id != user_id:
                logger.warning(
                    "Ignoring re-authentication as a different user",
                    connection_id=connection_id,
                    bound_user_id=str(entry.user_id),
                )
            return entry.user_id == user_id

    async def unregister(self, connection_id: str) -> None:
        async with self._lock:
            removed = self._connections.pop(connection_id, None)
        if removed is not None:
            logger.debug("Connection unregistered", connection_id=connection_id)

    async def connection_count(self, user_id: uuid.UUID | None = None) -> int:
        """Number of registered connections, optionally only those of one user."""
        async with self._lock:
            if user_id is None:
                return len(self._connections)
            return sum(1 for entry in self._connections.values() if entry.user_id == user_id)

    async def send(self, connection_id: str, event: dict) -> bool:
        """Send an event to one connection, authenticated or not.

        Returns:
            False if the connection is unknown or the send failed.
        """
        async with self._lock:
            entry = self._connections.get(connection_id)
        if entry is None:
            return False
        try:
            async with entry.send_lock:
                await entry.connection.send_json(event)
        except Exception as exc:
            logger.warning("Dropping connection after failed send", connection_id=connection_id, reason=str(exc))
            await self.unregister(connection_id)
            return False
        return True

    async def publish(self, user_id: uuid.UUID, event: dict) -> int:
        """Send an event to every authenticated connection of a user.

        Connections whose send fails are dropped from the registry.

        Args:
            user_id: Target user.
            event: JSON-serialisable event body.

        Returns:
            Number of connections the event was delivered to.
        """
        async with self._lock:
            targets = [
                (connection_id, entry)
                for connection_id, entry in self._connections.items()
                if entry.user_id == user_id
            ]

        delivered = 0
        for connection_id, entry in targets:
            try:
                async with entry.send_lock:
                    await entry.connection.send_json(event)
            except Exception as exc:
                logger.warning(
                    "Dropping connection after failed send",
                    connection_id=connection_id,
                    user_id=str(user_id),
                    reason=str(exc),
                )
                await self.unregister(connection_id)
                continue
            delivered += 1

        logger.debug("Event published", user_id=str(user_id), event_type=event.get("type"), delivered=delivered)
        return delivered
