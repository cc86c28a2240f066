"""WebSocket subscription channel for live booking updates.

Clients authenticate with ``?token=<access token>`` and then send
``{"action": "join" | "leave", "bookingId": "<uuid>"}`` frames. Status
updates for joined bookings are pushed as ``status-update`` frames.
"""

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError

from cleanbook.api.deps import authenticate_token, get_notification_hub
from cleanbook.core.exceptions import AuthenticationError
from cleanbook.core.permissions import Actor, UserRole, may_view_booking
from cleanbook.repositories.booking_repository import BookingRepository
from cleanbook.schemas.events import ClientMessage, ErrorFrame, SubscriptionAck
from cleanbook.services.notification_hub import Connection, NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _resolve_actor(websocket: WebSocket, token: str) -> Actor:
    session_factory = websocket.app.state.session_factory
    async with session_factory() as db:
        user = await authenticate_token(token, db)
        return Actor(user_id=user.id, role=UserRole(user.role))


async def _handle_message(
    websocket: WebSocket,
    hub: NotificationHub,
    connection: Connection,
    actor: Actor,
    raw: object,
) -> None:
    try:
        message = ClientMessage.model_validate(raw)
    except PydanticValidationError:
        connection.offer(
            ErrorFrame(code="ValidationError", detail="Expected {action: join|leave, bookingId}").to_wire()
        )
        return

    if message.action == "leave":
        hub.unsubscribe(message.booking_id, connection.connection_id)
        connection.offer(SubscriptionAck(type="left", booking_id=message.booking_id).to_wire())
        return

    session_factory = websocket.app.state.session_factory
    async with session_factory() as db:
        booking = await BookingRepository(db).get_booking(message.booking_id)

    if booking is None:
        connection.offer(
            ErrorFrame(code="NotFound", detail="Booking not found", booking_id=message.booking_id).to_wire()
        )
        return
    if not may_view_booking(actor, booking):
        connection.offer(
            ErrorFrame(
                code="Forbidden",
                detail="You don't have permission to watch this booking",
                booking_id=message.booking_id,
            ).to_wire()
        )
        return

    hub.subscribe(message.booking_id, connection.connection_id)
    connection.offer(SubscriptionAck(type="joined", booking_id=message.booking_id).to_wire())


async def _reader(websocket: WebSocket, hub: NotificationHub, connection: Connection, actor: Actor) -> None:
    while True:
        try:
            raw = await websocket.receive_json()
        except (ValueError, KeyError):
            # KeyError: a binary frame has no "text" part
            connection.offer(ErrorFrame(code="ValidationError", detail="Frames must be JSON text").to_wire())
            continue
        await _handle_message(websocket, hub, connection, actor, raw)


async def _writer(websocket: WebSocket, connection: Connection) -> None:
    while True:
        frame = await connection.next_event()
        if frame is None:
            # Dropped by the hub (slow consumer or shutdown)
            await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
            return
        await websocket.send_json(frame)


@router.websocket("/ws")
async def booking_updates(websocket: WebSocket, token: str = Query(default="")) -> None:
    """Subscribe to live status updates for bookings."""
    try:
        actor = await _resolve_actor(websocket, token)
    except AuthenticationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub = get_notification_hub(websocket)
    connection = hub.connect()
    logger.info("Client %s connected as %s %s", connection.connection_id, actor.role.value, actor.user_id)

    try:
        reader = asyncio.create_task(_reader(websocket, hub, connection, actor))
        writer = asyncio.create_task(_writer(websocket, connection))
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning("Realtime connection %s failed: %r", connection.connection_id, exc)
                    with contextlib.suppress(RuntimeError):
                        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            for task in (reader, writer):
                task.cancel()
            for task in (reader, writer):
                # Failures were logged above
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
    finally:
        hub.disconnect(connection.connection_id)
        logger.info("Client %s disconnected", connection.connection_id)
