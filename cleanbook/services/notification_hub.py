"""Notification hub for realtime booking updates.

Connections join "rooms" keyed by booking id. Publishing enqueues the event
on each subscriber's bounded outbox and never waits on the subscriber; the
transport (see ``cleanbook.api.v1.realtime``) drains the outbox onto the
network. A subscriber whose outbox is full is dropped.

Delivery is best-effort and at-most-once: nothing is buffered for
connections that join after an event was published.
"""

import asyncio
import logging
import threading
import uuid
from collections.abc import Iterable
from typing import Any

from cleanbook.schemas.events import RealtimeEvent

logger = logging.getLogger(__name__)


class Connection:
    """A live client connection and its outbound event queue."""

    def __init__(self, connection_id: str, queue_size: int) -> None:
        self.connection_id = connection_id
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, frame: dict[str, Any]) -> bool:
        """Enqueue a frame without waiting. Returns False if the outbox is full or closed."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    async def next_event(self) -> dict[str, Any] | None:
        """Wait for the next outbound frame. None means the connection was dropped."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def drop(self) -> None:
        """Close the connection, discarding undelivered frames and waking the writer."""
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def pending(self) -> int:
        return self._queue.qsize()


class NotificationHub:
    """Maintains booking rooms and fans events out to their subscribers.

    One instance is created at application startup and passed to whatever
    publishes or subscribes; ``close`` tears it down at shutdown.
    """

    def __init__(self, queue_size: int = 64) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        # connection id -> booking ids it joined, for cleanup on disconnect
        self._memberships: dict[str, set[str]] = {}
        self._closed = False

    # ==================== CONNECTIONS ====================

    def connect(self, connection_id: str | None = None) -> Connection:
        """Register a new connection and return it."""
        connection_id = connection_id or uuid.uuid4().hex
        with self._lock:
            if self._closed:
                raise RuntimeError("Notification hub is closed")
            if connection_id in self._connections:
                raise ValueError(f"Connection '{connection_id}' is already registered")
            connection = Connection(connection_id, self.queue_size)
            self._connections[connection_id] = connection
            self._memberships[connection_id] = set()
        logger.debug("Connection %s registered", connection_id)
        return connection

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and remove it from every room it joined."""
        with self._lock:
            connection = self._remove_connection(connection_id)
        if connection is not None:
            connection.drop()
            logger.debug("Connection %s disconnected", connection_id)

    def get_connection(self, connection_id: str) -> Connection | None:
        with self._lock:
            return self._connections.get(connection_id)

    def _remove_connection(self, connection_id: str) -> Connection | None:
        # Caller holds self._lock
        connection = self._connections.pop(connection_id, None)
        for booking_id in self._memberships.pop(connection_id, set()):
            self._discard_member(booking_id, connection_id)
        return connection

    def _discard_member(self, booking_id: str, connection_id: str) -> None:
        # Caller holds self._lock
        members = self._rooms.get(booking_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[booking_id]

    # ==================== ROOMS ====================

    def subscribe(self, booking_id: Any, connection_id: str) -> None:
        """Add the connection to the booking's room. Idempotent."""
        room = str(booking_id)
        with self._lock:
            if connection_id not in self._connections:
                raise KeyError(f"Unknown connection '{connection_id}'")
            self._rooms.setdefault(room, set()).add(connection_id)
            self._memberships[connection_id].add(room)
        logger.info("Connection %s joined booking room %s", connection_id, room)

    def unsubscribe(self, booking_id: Any, connection_id: str) -> None:
        """Remove the connection from the booking's room. No-op if it is not there."""
        room = str(booking_id)
        with self._lock:
            self._discard_member(room, connection_id)
            memberships = self._memberships.get(connection_id)
            if memberships is not None:
                memberships.discard(room)
        logger.info("Connection %s left booking room %s", connection_id, room)

    def subscribers(self, booking_id: Any) -> frozenset[str]:
        with self._lock:
            return frozenset(self._rooms.get(str(booking_id), ()))

    def rooms_of(self, connection_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._memberships.get(connection_id, ()))

    # ==================== DELIVERY ====================

    def publish(self, booking_id: Any, event: RealtimeEvent | dict[str, Any]) -> int:
        """Enqueue ``event`` for every subscriber of the booking.

        Returns the number of connections the event was enqueued for.
        Connections that are gone are pruned; connections whose outbox is
        full are dropped.
        """
        room = str(booking_id)
        frame = event.to_wire() if isinstance(event, RealtimeEvent) else event
        delivered = 0
        dropped: list[Connection] = []

        with self._lock:
            members = list(self._rooms.get(room, ()))
            for connection_id in members:
                connection = self._connections.get(connection_id)
                if connection is None or connection.closed:
                    # Went away without unsubscribing
                    self._discard_member(room, connection_id)
                    if connection is not None:
                        self._remove_connection(connection_id)
                    continue
                if connection.offer(frame):
                    delivered += 1
                else:
                    self._remove_connection(connection_id)
                    dropped.append(connection)

        for connection in dropped:
            connection.drop()
            logger.warning(
                "Dropped slow subscriber %s of booking %s (outbox full)",
                connection.connection_id,
                room,
            )
        return delivered

    def close(self) -> None:
        """Drop every connection and refuse new ones."""
        with self._lock:
            self._closed = True
            connections: Iterable[Connection] = list(self._connections.values())
            self._connections.clear()
            self._rooms.clear()
            self._memberships.clear()
        for connection in connections:
            connection.drop()
        logger.info("Notification hub closed")

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)
