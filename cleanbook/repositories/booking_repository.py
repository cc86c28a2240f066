"""Booking repository - database operations behind the lifecycle engine."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cleanbook.core.exceptions import PersistenceFailure
from cleanbook.core.permissions import UserRole
from cleanbook.domain.booking_state import BookingStatus
from cleanbook.models import Booking, CleanerProfile, Service, User


class BookingRepository:
    """Load and save bookings and their related rows within one session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_booking(self, booking_id: UUID, for_update: bool = False) -> Booking | None:
        """Get a booking by ID, optionally row-locked for the rest of the transaction."""
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        # Always re-read committed state, even if the session has it cached
        query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_user(self, user_id: UUID) -> User | None:
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.cleaner_profile))
            .where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_service(self, service_id: UUID) -> Service | None:
        result = await self.db.execute(select(Service).where(Service.id == service_id))
        return result.scalar_one_or_none()

    async def get_cleaner_profile(self, user_id: UUID) -> CleanerProfile | None:
        result = await self.db.execute(
            select(CleanerProfile).where(CleanerProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_bookings(
        self,
        customer_id: UUID | None = None,
        cleaner_id: UUID | None = None,
        status: BookingStatus | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Booking], int]:
        """List bookings newest first, returning the page and the total count."""
        query = select(Booking)
        if customer_id is not None:
            query = query.where(Booking.customer_id == customer_id)
        if cleaner_id is not None:
            query = query.where(Booking.cleaner_id == cleaner_id)
        if status is not None:
            query = query.where(Booking.status == status)

        count_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        query = query.order_by(Booking.service_date.desc(), Booking.created_at.desc())
        result = await self.db.execute(query.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def list_cleaners(self, available: bool | None = None) -> list[User]:
        query = (
            select(User)
            .join(CleanerProfile, CleanerProfile.user_id == User.id)
            .options(selectinload(User.cleaner_profile))
            .where(User.role == UserRole.CLEANER, User.is_active == True)  # noqa: E712
        )
        if available is not None:
            query = query.where(CleanerProfile.is_available == available)
        result = await self.db.execute(query.order_by(User.name))
        return list(result.scalars().all())

    def add(self, instance: Booking | User | CleanerProfile) -> None:
        self.db.add(instance)

    async def save(self) -> None:
        """Commit pending changes; any database error rolls back and surfaces as PersistenceFailure."""
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailure(f"Failed to persist booking changes: {e.__class__.__name__}") from e

    # ==================== REPORTING ====================

    async def count_users(self, role: UserRole | None = None) -> int:
        query = select(func.count()).select_from(User)
        if role is not None:
            query = query.where(User.role == role)
        return (await self.db.execute(query)).scalar_one()

    async def count_bookings(self, status: BookingStatus | None = None) -> int:
        query = select(func.count()).select_from(Booking)
        if status is not None:
            query = query.where(Booking.status == status)
        return (await self.db.execute(query)).scalar_one()

    async def completed_revenue(self) -> int:
        """Sum of ``total_price`` over COMPLETED bookings, in minor units."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(Booking.total_price), 0)).where(
                Booking.status == BookingStatus.COMPLETED
            )
        )
        return int(result.scalar_one())
