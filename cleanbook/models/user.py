"""User-related database models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cleanbook.core.permissions import UserRole
from cleanbook.database import Base

if TYPE_CHECKING:
    from cleanbook.models.booking import Booking


def utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200))
    phone: Mapped[str | None] = mapped_column(String(20))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=20),
        nullable=False,
        default=UserRole.CUSTOMER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    cleaner_profile: Mapped["CleanerProfile | None"] = relationship(
        "CleanerProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    bookings_as_customer: Mapped[list["Booking"]] = relationship(
        "Booking", back_populates="customer", foreign_keys="[Booking.customer_id]"
    )
    bookings_as_cleaner: Mapped[list["Booking"]] = relationship(
        "Booking", back_populates="cleaner", foreign_keys="[Booking.cleaner_id]"
    )


class CleanerProfile(Base):
    """Profile attached to users with the CLEANER role."""

    __tablename__ = "cleaner_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    bio: Mapped[str | None] = mapped_column(Text)
    experience_years: Mapped[int | None] = mapped_column(Integer)
    # Assignment precondition
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="cleaner_profile")
