"""
Topic Router - membership registry and per-topic delivery.

The router owns two maps kept in step with each other:
    topic -> ids of member connections
    connection id -> topics it joined

Membership changes happen without awaiting, so on the single event loop a
publish never observes a half-applied join or leave. publish() snapshots
the member set before delivering and skips connections that disconnect
while the delivery is in flight.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from core.auth import TokenAuthenticator
from core.config import config
from core.errors import DeliveryError, PermissionDeniedError
from core.logging import get_logger
from core.models.event import Event
from core.models.user import Identity
from core.realtime.topics import PUBLIC_TOPIC, can_join, user_topic

logger = get_logger("realtime")


class Connection(ABC):
    """
    A live subscriber channel.

    Transports subclass this and implement send()/close(). `identity` is
    set by the router when the connection presents a valid token.
    """

    def __init__(self, connection_id: str):
        self.id = connection_id
        self.identity: Optional[Identity] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @abstractmethod
    async def send(self, event: str, payload: Dict[str, Any]) -> None:
        """Deliver one event to the remote end. Raise on a broken channel."""

    @abstractmethod
    async def close(self) -> None:
        ...


class TopicRouter:
    """
    Explicitly owned registry of live connections and their topics.

    Constructed once per process and handed to whoever publishes; close()
    at shutdown disconnects everything.
    """

    def __init__(self, authenticator: Optional[TokenAuthenticator] = None, send_timeout: Optional[float] = None):
        self.authenticator = authenticator
        self.send_timeout = send_timeout if send_timeout is not None else config.WS_SEND_TIMEOUT
        self._connections: Dict[str, Connection] = {}
        self._members: Dict[str, Set[str]] = {}
        self._joined: Dict[str, Set[str]] = {}

    # ========================================================================
    # CONNECTION LIFECYCLE
    # ========================================================================

    def connect(self, connection: Connection, token: Optional[str] = None) -> Optional[Identity]:
        """
        Register a connection and auto-join its default topics.

        A valid token authenticates the connection and joins its personal
        topic. Invalid or absent tokens leave it anonymous.

        Returns:
            The resolved identity, or None for anonymous connections
        """
        if token and self.authenticator is not None:
            connection.identity = self.authenticator.try_resolve(token)

        self._connections[connection.id] = connection
        self._joined.setdefault(connection.id, set())
        self.join(connection, PUBLIC_TOPIC)

        if connection.identity is not None:
            self.join(connection, user_topic(connection.identity.user_id))
            logger.info(
                "Authenticated connection",
                extra={"connection_id": connection.id, "user_id": connection.identity.user_id},
            )
        else:
            logger.info("Anonymous connection", extra={"connection_id": connection.id})
        return connection.identity

    def disconnect(self, connection: Connection) -> None:
        self.leave_all(connection)
        self._connections.pop(connection.id, None)
        self._joined.pop(connection.id, None)
        logger.info("Connection closed", extra={"connection_id": connection.id})

    async def close(self) -> None:
        """Disconnect and close every connection."""
        connections = list(self._connections.values())
        for connection in connections:
            self.disconnect(connection)
        results = await asyncio.gather(
            *(connection.close() for connection in connections), return_exceptions=True
        )
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Error closing connection",
                    extra={"connection_id": connection.id, "error": str(result)},
                )
        logger.info("Topic router closed", extra={"connections": len(connections)})

    # ========================================================================
    # MEMBERSHIP
    # ========================================================================

    def join(self, connection: Connection, topic: str) -> bool:
        """
        Add a connection to a topic. Joining twice is a no-op.

        Returns:
            True if the membership is new

        Raises:
            PermissionDeniedError: If the connection may not join the topic
        """
        if not can_join(connection.identity, topic):
            logger.warning(
                "Rejected topic join",
                extra={"connection_id": connection.id, "topic": topic},
            )
            raise PermissionDeniedError(f"Not allowed to join {topic}")

        if connection.id not in self._connections:
            self._connections[connection.id] = connection

        members = self._members.setdefault(topic, set())
        if connection.id in members:
            return False
        members.add(connection.id)
        self._joined.setdefault(connection.id, set()).add(topic)
        logger.debug("Joined topic", extra={"connection_id": connection.id, "topic": topic})
        return True

    def leave(self, connection: Connection, topic: str) -> bool:
        members = self._members.get(topic)
        if not members or connection.id not in members:
            return False
        members.discard(connection.id)
        if not members:
            del self._members[topic]
        self._joined.get(connection.id, set()).discard(topic)
        return True

    def leave_all(self, connection: Connection) -> int:
        topics = list(self._joined.get(connection.id, ()))
        for topic in topics:
            self.leave(connection, topic)
        return len(topics)

    def members(self, topic: str) -> Set[str]:
        return set(self._members.get(topic, ()))

    def topics_of(self, connection: Connection) -> Set[str]:
        return set(self._joined.get(connection.id, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ========================================================================
    # DELIVERY
    # ========================================================================

    async def publish(self, topic: str, event: Event) -> int:
        """
        Deliver `event` to every connection joined to `topic` at call time.

        A topic without members is a no-op. A recipient that fails, or
        whose send exceeds send_timeout, is logged and does not affect
        the others.

        Returns:
            Number of successful deliveries
        """
        member_ids = list(self._members.get(topic, ()))
        if not member_ids:
            logger.debug("No subscribers for topic", extra={"topic": topic, "event": event.name})
            return 0

        payload = event.to_payload()
        recipients: List[Connection] = [
            self._connections[cid] for cid in member_ids if cid in self._connections
        ]
        results = await asyncio.gather(
            *(self._deliver(connection, event.name, payload) for connection in recipients)
        )
        delivered = sum(1 for ok in results if ok)
        logger.info(
            f"Published {event.name}",
            extra={"topic": topic, "recipients": len(recipients), "delivered": delivered},
        )
        return delivered

    async def _deliver(self, connection: Connection, name: str, payload: Dict[str, Any]) -> bool:
        # Left while the publish was in flight
        if connection.id not in self._connections:
            return False
        try:
            await asyncio.wait_for(connection.send(name, payload), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            error = DeliveryError(connection.id, f"send timed out after {self.send_timeout}s")
            logger.warning(str(error), extra={"connection_id": connection.id, "event": name})
            return False
        except Exception as e:
            error = DeliveryError(connection.id, str(e))
            logger.warning(str(error), extra={"connection_id": connection.id, "event": name})
            return False
