"""Admin dashboard endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cleanbook.api.deps import get_db, require_admin
from cleanbook.core.permissions import Actor, UserRole
from cleanbook.domain.booking_state import BookingStatus
from cleanbook.repositories.booking_repository import BookingRepository
from cleanbook.schemas.booking import BookingStats

router = APIRouter()


@router.get("/stats", response_model=BookingStats)
async def get_stats(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BookingStats:
    """User and booking totals, with revenue from completed bookings."""
    repo = BookingRepository(db)
    return BookingStats(
        total_users=await repo.count_users(),
        total_cleaners=await repo.count_users(UserRole.CLEANER),
        total_bookings=await repo.count_bookings(),
        pending_bookings=await repo.count_bookings(BookingStatus.PENDING),
        completed_bookings=await repo.count_bookings(BookingStatus.COMPLETED),
        total_revenue=await repo.completed_revenue(),
    )
