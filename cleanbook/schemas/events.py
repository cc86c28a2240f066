"""Realtime event payloads pushed over the subscription channel."""

from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cleanbook.domain.booking_state import BookingStatus


class RealtimeEvent(BaseModel):
    """Base for frames sent to clients; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class StatusUpdateEvent(RealtimeEvent):
    """Broadcast to every subscriber of a booking after a committed transition."""

    type: Literal["status-update"] = "status-update"
    booking_id: UUID
    status: BookingStatus
    previous_status: BookingStatus | None = None
    cleaner_id: UUID | None = None
    message: str = ""
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def model_post_init(self, __context: Any) -> None:
        if not self.message:
            self.message = f"Booking status updated to {self.status.value}"


class SubscriptionAck(RealtimeEvent):
    """Sent to a client after it joins or leaves a booking room."""

    type: Literal["joined", "left"]
    booking_id: UUID


class ErrorFrame(RealtimeEvent):
    """Sent to a client when one of its channel messages is rejected."""

    type: Literal["error"] = "error"
    code: str
    detail: str
    booking_id: UUID | None = None


class ClientMessage(BaseModel):
    """Frame sent by a client on the subscription channel."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: Literal["join", "leave"]
    booking_id: UUID
