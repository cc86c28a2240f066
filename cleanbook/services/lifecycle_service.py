"""Booking lifecycle engine.

All booking status changes go through ``LifecycleEngine``. Each operation
runs under the booking's lock, validates against the transition table and
the authorization guard, commits once, and only then broadcasts a
``status-update`` event through the notification hub.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cleanbook.core.exceptions import (
    AuthorizationError,
    CleanerUnavailable,
    InvalidTransition,
    NotFoundError,
)
from cleanbook.core.locks import KeyedLock
from cleanbook.core.permissions import (
    Actor,
    UserRole,
    assert_may_transition,
    may_assign_cleaner,
)
from cleanbook.domain.booking_state import BookingStatus, assert_booking_transition
from cleanbook.models import Booking
from cleanbook.repositories.booking_repository import BookingRepository
from cleanbook.schemas.booking import BookingCreate
from cleanbook.schemas.events import StatusUpdateEvent
from cleanbook.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)

# Timestamp column stamped when a booking enters each status
STATUS_TIMESTAMPS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.IN_PROGRESS: "started_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.NO_SHOW: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


class LifecycleEngine:
    """Coordinates booking transitions, persistence and notification."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hub: NotificationHub,
        repository_cls: type[BookingRepository] = BookingRepository,
    ) -> None:
        self.session_factory = session_factory
        self.hub = hub
        self.repository_cls = repository_cls
        self._locks = KeyedLock()

    async def request_transition(
        self,
        booking_id: UUID,
        requested_status: BookingStatus,
        actor: Actor,
        message: str | None = None,
    ) -> Booking:
        """Move a booking to ``requested_status`` on behalf of ``actor``.

        Raises:
            NotFoundError: booking does not exist
            InvalidTransition: status not reachable from the current one
            AuthorizationError: actor may not make this move
            PersistenceFailure: the commit failed; nothing changed
        """
        requested_status = BookingStatus(requested_status)

        async with self._locks.hold(str(booking_id)):
            async with self.session_factory() as db:
                repo = self.repository_cls(db)
                booking = await repo.get_booking(booking_id, for_update=True)
                if booking is None:
                    raise NotFoundError("Booking", str(booking_id))

                previous_status = BookingStatus(booking.status)
                assert_booking_transition(previous_status, requested_status)
                assert_may_transition(actor, booking, requested_status)

                self._apply_status(booking, requested_status, actor)
                await repo.save()

        logger.info(
            "Booking %s: %s -> %s by %s %s",
            booking_id,
            previous_status.value,
            requested_status.value,
            actor.role.value,
            actor.user_id,
        )
        self._broadcast(booking, previous_status, message)
        return booking

    async def assign_cleaner(self, booking_id: UUID, cleaner_id: UUID, actor: Actor) -> Booking:
        """Assign a cleaner to a pending booking, confirming it in the same commit.

        Raises:
            NotFoundError: booking or cleaner does not exist
            AuthorizationError: actor is not an admin
            InvalidTransition: booking is not PENDING
            CleanerUnavailable: cleaner is not accepting work
            PersistenceFailure: the commit failed; nothing changed
        """
        async with self._locks.hold(str(booking_id)):
            async with self.session_factory() as db:
                repo = self.repository_cls(db)
                booking = await repo.get_booking(booking_id, for_update=True)
                if booking is None:
                    raise NotFoundError("Booking", str(booking_id))

                if not may_assign_cleaner(actor):
                    raise AuthorizationError("Only admins can assign cleaners")

                previous_status = BookingStatus(booking.status)
                if previous_status != BookingStatus.PENDING:
                    raise InvalidTransition(
                        previous_status.value,
                        BookingStatus.CONFIRMED.value,
                        detail=f"Cleaners can only be assigned to PENDING bookings (booking is {previous_status.value})",
                    )

                cleaner = await repo.get_user(cleaner_id)
                if cleaner is None or cleaner.role != UserRole.CLEANER:
                    raise NotFoundError("Cleaner", str(cleaner_id))
                if cleaner.cleaner_profile is None or not cleaner.cleaner_profile.is_available:
                    raise CleanerUnavailable()

                booking.cleaner_id = cleaner.id
                self._apply_status(booking, BookingStatus.CONFIRMED, actor)
                await repo.save()

        logger.info("Booking %s: cleaner %s assigned by admin %s", booking_id, cleaner_id, actor.user_id)
        self._broadcast(booking, previous_status, "A cleaner has been assigned to your booking")
        return booking

    async def create_booking(self, actor: Actor, data: BookingCreate) -> Booking:
        """Create a PENDING booking for a customer, priced from the service."""
        if actor.role != UserRole.CUSTOMER:
            raise AuthorizationError("Only customers can request bookings")

        async with self.session_factory() as db:
            repo = self.repository_cls(db)
            service = await repo.get_service(data.service_id)
            if service is None or not service.is_active:
                raise NotFoundError("Service", str(data.service_id))

            booking = Booking(
                customer_id=actor.user_id,
                service_id=service.id,
                status=BookingStatus.PENDING,
                service_date=data.service_date,
                time_slot=data.time_slot,
                address=data.address,
                city=data.city,
                notes=data.notes,
                total_price=service.price,
            )
            repo.add(booking)
            await repo.save()

        logger.info("Booking %s created by customer %s", booking.id, actor.user_id)
        return booking

    @staticmethod
    def _apply_status(booking: Booking, status: BookingStatus, actor: Actor) -> None:
        now = datetime.now(UTC)
        booking.status = status
        booking.updated_at = now
        setattr(booking, STATUS_TIMESTAMPS[status], now)
        if status == BookingStatus.CANCELLED:
            booking.cancelled_by = actor.role

    def _broadcast(self, booking: Booking, previous_status: BookingStatus, message: str | None) -> None:
        """Best-effort fan-out; the transition has already committed."""
        try:
            event = StatusUpdateEvent(
                booking_id=booking.id,
                status=booking.status,
                previous_status=previous_status,
                cleaner_id=booking.cleaner_id,
                message=message or "",
            )
            delivered = self.hub.publish(booking.id, event)
            logger.debug("Booking %s update delivered to %d subscriber(s)", booking.id, delivered)
        except Exception:
            logger.warning("Failed to broadcast update for booking %s", booking.id, exc_info=True)
