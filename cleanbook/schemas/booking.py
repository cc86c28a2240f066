"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cleanbook.core.permissions import UserRole
from cleanbook.domain.booking_state import BookingStatus


class BookingCreate(BaseModel):
    """Schema for a customer requesting a service."""

    service_id: UUID
    service_date: date
    time_slot: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("service_date")
    @classmethod
    def validate_service_date(cls, v: date) -> date:
        if v < date.today():
            raise ValueError("service_date cannot be in the past")
        return v


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: UUID
    cleaner_id: UUID | None
    service_id: UUID

    # Status
    status: BookingStatus

    # Scheduling
    service_date: date
    time_slot: str
    address: str
    city: str
    notes: str | None

    total_price: int

    cancelled_by: UserRole | None
    is_terminal: bool

    # Timestamps
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingTransitionRequest(BaseModel):
    """Schema for requesting a status change."""

    status: BookingStatus
    # Optional text pushed to watchers along with the update
    message: str | None = Field(None, max_length=500)


class BookingAssignRequest(BaseModel):
    """Schema for assigning a cleaner to a pending booking."""

    cleaner_id: UUID


class BookingStats(BaseModel):
    """Platform totals for the admin dashboard."""

    total_users: int
    total_cleaners: int
    total_bookings: int
    pending_bookings: int
    completed_bookings: int
    # Minor currency units, COMPLETED bookings only
    total_revenue: int
