"""Pydantic schemas for API validation."""

from cleanbook.schemas.booking import (
    BookingAssignRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStats,
    BookingTransitionRequest,
)
from cleanbook.schemas.events import (
    ClientMessage,
    ErrorFrame,
    StatusUpdateEvent,
    SubscriptionAck,
)
from cleanbook.schemas.user import (
    CleanerProfileResponse,
    CleanerProfileUpdate,
    CleanerSummary,
    UserResponse,
)

__all__ = [
    # Booking
    "BookingAssignRequest",
    "BookingCreate",
    "BookingListResponse",
    "BookingResponse",
    "BookingStats",
    "BookingTransitionRequest",
    # Events
    "ClientMessage",
    "ErrorFrame",
    "StatusUpdateEvent",
    "SubscriptionAck",
    # User
    "CleanerProfileResponse",
    "CleanerProfileUpdate",
    "CleanerSummary",
    "UserResponse",
]
