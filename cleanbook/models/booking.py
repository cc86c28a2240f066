"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cleanbook.core.permissions import UserRole
from cleanbook.database import Base
from cleanbook.domain.booking_state import BookingStatus, is_terminal
from cleanbook.models.user import utcnow

if TYPE_CHECKING:
    from cleanbook.models.service import Service
    from cleanbook.models.user import User


class Booking(Base):
    """Booking model.

    ``status`` is only ever changed through the lifecycle engine.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price"),
        # A pending booking never has a cleaner
        CheckConstraint("status <> 'PENDING' OR cleaner_id IS NULL", name="ck_bookings_pending_unassigned"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    cleaner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id"), nullable=False
    )

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=20),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Scheduling
    service_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    time_slot: Mapped[str] = mapped_column(String(50), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    # Pricing (minor currency units, fixed at creation)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)

    # Cancellation
    cancelled_by: Mapped[UserRole | None] = mapped_column(
        Enum(UserRole, native_enum=False, length=20)
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    customer: Mapped["User"] = relationship(
        "User", back_populates="bookings_as_customer", foreign_keys=[customer_id]
    )
    cleaner: Mapped["User | None"] = relationship(
        "User", back_populates="bookings_as_cleaner", foreign_keys=[cleaner_id]
    )
    service: Mapped["Service"] = relationship("Service")

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)
