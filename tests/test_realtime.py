"""Subscription channel tests over Starlette's synchronous TestClient."""

import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from cleanbook.api.v1 import realtime
from cleanbook.core.permissions import UserRole
from cleanbook.database import get_db
from cleanbook.domain.booking_state import BookingStatus
from cleanbook.main import create_application, install_services
from helpers import Seed, auth_headers, token_for


@pytest.fixture
def seed_sync(sync_database):
    seed = Seed(sync_database)

    def run(coro):
        return asyncio.run(coro)

    return seed, run


@pytest.fixture
def client(sync_database):
    app = create_application(use_lifespan=False)
    install_services(app, sync_database)

    async def override_get_db():
        async with sync_database() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.state.notification_hub.close()


@pytest.fixture
def scenario(seed_sync):
    seed, run = seed_sync
    customer = run(seed.user(UserRole.CUSTOMER))
    cleaner = run(seed.user(UserRole.CLEANER))
    booking = run(seed.booking(customer, BookingStatus.CONFIRMED, cleaner))
    return customer, cleaner, booking


def ws_url(user) -> str:
    return f"/api/v1/ws?token={token_for(user)}"


def test_watcher_receives_status_update(client, scenario):
    customer, cleaner, booking = scenario

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        ack = ws.receive_json()
        assert ack == {"type": "joined", "bookingId": str(booking.id)}

        response = client.post(
            f"/api/v1/bookings/{booking.id}/transition",
            json={"status": "IN_PROGRESS"},
            headers=auth_headers(cleaner),
        )
        assert response.status_code == 200

        frame = ws.receive_json()
        assert frame["type"] == "status-update"
        assert frame["bookingId"] == str(booking.id)
        assert frame["status"] == "IN_PROGRESS"
        assert frame["previousStatus"] == "CONFIRMED"
        assert frame["message"] == "Booking status updated to IN_PROGRESS"


def test_rejected_transition_sends_nothing(client, scenario):
    customer, cleaner, booking = scenario

    with client.websocket_connect(ws_url(cleaner)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        ws.receive_json()

        response = client.post(
            f"/api/v1/bookings/{booking.id}/transition",
            json={"status": "COMPLETED"},
            headers=auth_headers(cleaner),
        )
        assert response.status_code == 400

        # The next frame is the ack for a later leave, not a status update
        ws.send_json({"action": "leave", "bookingId": str(booking.id)})
        assert ws.receive_json() == {"type": "left", "bookingId": str(booking.id)}


def test_non_participant_cannot_join(client, scenario, seed_sync):
    _, _, booking = scenario
    seed, run = seed_sync
    stranger = run(seed.user(UserRole.CUSTOMER))

    with client.websocket_connect(ws_url(stranger)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        frame = ws.receive_json()

    assert frame["type"] == "error"
    assert frame["code"] == "Forbidden"
    assert frame["bookingId"] == str(booking.id)


def test_join_unknown_booking(client, scenario):
    customer, _, _ = scenario
    missing = uuid4()

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_json({"action": "join", "bookingId": str(missing)})
        frame = ws.receive_json()

    assert frame["code"] == "NotFound"


def test_malformed_frames_get_an_error(client, scenario):
    customer, _, _ = scenario

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_text("not json")
        assert ws.receive_json()["code"] == "ValidationError"
        ws.send_json({"action": "shout"})
        assert ws.receive_json()["code"] == "ValidationError"


def test_bad_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/ws?token=garbage") as ws:
            ws.receive_json()

    assert exc_info.value.code == 1008


def test_disconnect_releases_connection(client, scenario):
    customer, _, booking = scenario
    hub = client.app.state.notification_hub

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        ws.receive_json()
        assert len(hub.subscribers(booking.id)) == 1

    assert hub.subscribers(booking.id) == frozenset()
    assert client.get("/health").json()["realtime_connections"] == 0


def test_binary_frame_is_rejected_and_cleanup_still_runs(client, scenario):
    customer, _, booking = scenario
    hub = client.app.state.notification_hub

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        ws.receive_json()
        ws.send_bytes(b"\x00\x01")
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "ValidationError"

    assert hub.connection_count == 0
    assert hub.subscribers(booking.id) == frozenset()


def test_reader_failure_still_leaves_every_room(client, scenario, monkeypatch):
    customer, _, booking = scenario
    hub = client.app.state.notification_hub

    with client.websocket_connect(ws_url(customer)) as ws:
        ws.send_json({"action": "join", "bookingId": str(booking.id)})
        ws.receive_json()
        assert hub.subscribers(booking.id) != frozenset()

        async def broken(*args, **kwargs):
            raise ZeroDivisionError("handler bug")

        monkeypatch.setattr(realtime, "_handle_message", broken)
        ws.send_json({"action": "leave", "bookingId": str(booking.id)})
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
        assert exc_info.value.code == 1011

    assert hub.connection_count == 0
    assert hub.subscribers(booking.id) == frozenset()
