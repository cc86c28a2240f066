import asyncio
from uuid import uuid4

import pytest

from cleanbook.domain.booking_state import BookingStatus
from cleanbook.schemas.events import StatusUpdateEvent
from cleanbook.services.notification_hub import NotificationHub


def event(booking_id, status=BookingStatus.COMPLETED):
    return StatusUpdateEvent(booking_id=booking_id, status=status)


async def test_publish_reaches_every_subscriber_of_the_booking(hub):
    booking_id = uuid4()
    a = hub.connect()
    b = hub.connect()
    outsider = hub.connect()
    hub.subscribe(booking_id, a.connection_id)
    hub.subscribe(booking_id, b.connection_id)
    hub.subscribe(uuid4(), outsider.connection_id)

    delivered = hub.publish(booking_id, event(booking_id))

    assert delivered == 2
    for connection in (a, b):
        frame = await asyncio.wait_for(connection.next_event(), timeout=1)
        assert frame["type"] == "status-update"
        assert frame["bookingId"] == str(booking_id)
        assert frame["status"] == "COMPLETED"
        assert frame["message"] == "Booking status updated to COMPLETED"
    assert outsider.pending() == 0


async def test_subscribe_is_idempotent(hub):
    booking_id = uuid4()
    conn = hub.connect()
    hub.subscribe(booking_id, conn.connection_id)
    hub.subscribe(booking_id, conn.connection_id)

    assert hub.subscribers(booking_id) == {conn.connection_id}
    assert hub.publish(booking_id, event(booking_id)) == 1
    assert conn.pending() == 1


async def test_unsubscribe_twice_is_a_noop(hub):
    booking_id = uuid4()
    conn = hub.connect()
    hub.subscribe(booking_id, conn.connection_id)

    hub.unsubscribe(booking_id, conn.connection_id)
    hub.unsubscribe(booking_id, conn.connection_id)

    assert hub.subscribers(booking_id) == frozenset()
    assert hub.publish(booking_id, event(booking_id)) == 0


async def test_unsubscribe_unknown_connection_is_a_noop(hub):
    hub.unsubscribe(uuid4(), "never-connected")


async def test_subscribe_requires_a_registered_connection(hub):
    with pytest.raises(KeyError):
        hub.subscribe(uuid4(), "never-connected")


async def test_late_subscriber_gets_no_replay(hub):
    booking_id = uuid4()
    hub.publish(booking_id, event(booking_id, BookingStatus.IN_PROGRESS))

    conn = hub.connect()
    hub.subscribe(booking_id, conn.connection_id)

    assert conn.pending() == 0


async def test_disconnect_leaves_every_room(hub):
    rooms = [uuid4(), uuid4()]
    conn = hub.connect()
    for booking_id in rooms:
        hub.subscribe(booking_id, conn.connection_id)
    assert hub.rooms_of(conn.connection_id) == {str(r) for r in rooms}

    hub.disconnect(conn.connection_id)

    for booking_id in rooms:
        assert hub.subscribers(booking_id) == frozenset()
    assert conn.closed
    assert await conn.next_event() is None


async def test_closed_connection_is_pruned_on_next_publish(hub):
    booking_id = uuid4()
    gone = hub.connect()
    alive = hub.connect()
    hub.subscribe(booking_id, gone.connection_id)
    hub.subscribe(booking_id, alive.connection_id)

    # Transport died without unsubscribing
    gone.drop()

    assert hub.publish(booking_id, event(booking_id)) == 1
    assert hub.subscribers(booking_id) == {alive.connection_id}
    assert hub.get_connection(gone.connection_id) is None


async def test_full_outbox_drops_subscriber_without_blocking():
    hub = NotificationHub(queue_size=2)
    booking_id = uuid4()
    slow = hub.connect()
    fast = hub.connect()
    hub.subscribe(booking_id, slow.connection_id)
    hub.subscribe(booking_id, fast.connection_id)

    assert hub.publish(booking_id, event(booking_id, BookingStatus.CONFIRMED)) == 2
    assert hub.publish(booking_id, event(booking_id, BookingStatus.IN_PROGRESS)) == 2

    # fast drains, slow does not
    await fast.next_event()
    await fast.next_event()

    assert hub.publish(booking_id, event(booking_id, BookingStatus.COMPLETED)) == 1
    assert slow.closed
    assert hub.subscribers(booking_id) == {fast.connection_id}
    # Undelivered frames are discarded and the writer is told to stop
    assert await slow.next_event() is None
    frame = await fast.next_event()
    assert frame["status"] == "COMPLETED"


async def test_publish_to_empty_room(hub):
    assert hub.publish(uuid4(), event(uuid4())) == 0


async def test_close_drops_all_connections_and_refuses_new_ones(hub):
    booking_id = uuid4()
    conn = hub.connect()
    hub.subscribe(booking_id, conn.connection_id)

    hub.close()

    assert conn.closed
    assert hub.connection_count == 0
    assert hub.subscribers(booking_id) == frozenset()
    with pytest.raises(RuntimeError):
        hub.connect()


async def test_duplicate_connection_id_is_rejected(hub):
    hub.connect("conn-1")
    with pytest.raises(ValueError):
        hub.connect("conn-1")


async def test_custom_message_is_kept():
    booking_id = uuid4()
    frame = StatusUpdateEvent(
        booking_id=booking_id, status=BookingStatus.CANCELLED, message="Customer cancelled"
    ).to_wire()
    assert frame["message"] == "Customer cancelled"
    assert "occurredAt" in frame
