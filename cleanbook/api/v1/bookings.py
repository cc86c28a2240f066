"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cleanbook.api.deps import get_current_actor, get_db, get_lifecycle_engine, require_customer
from cleanbook.core.exceptions import AuthorizationError, NotFoundError
from cleanbook.core.permissions import Actor, UserRole, may_view_booking
from cleanbook.domain.booking_state import BookingStatus
from cleanbook.models.booking import Booking
from cleanbook.repositories.booking_repository import BookingRepository
from cleanbook.schemas.booking import (
    BookingAssignRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingTransitionRequest,
)
from cleanbook.services.lifecycle_service import LifecycleEngine

router = APIRouter()


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Annotated[Actor, Depends(require_customer)],
    engine: Annotated[LifecycleEngine, Depends(get_lifecycle_engine)],
) -> Booking:
    """Request a cleaning service. The booking starts as PENDING."""
    return await engine.create_booking(actor, booking_data)


@router.get("/", response_model=BookingListResponse)
async def get_my_bookings(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> BookingListResponse:
    """Get bookings visible to the caller.

    Customers see bookings they requested, cleaners see bookings assigned
    to them, admins see everything.
    """
    repo = BookingRepository(db)
    filters: dict[str, UUID] = {}
    if actor.role == UserRole.CUSTOMER:
        filters["customer_id"] = actor.user_id
    elif actor.role == UserRole.CLEANER:
        filters["cleaner_id"] = actor.user_id

    bookings, total = await repo.list_bookings(
        status=status_filter,
        offset=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Get a booking by ID."""
    booking = await BookingRepository(db).get_booking(booking_id)
    if not booking:
        raise NotFoundError("Booking", str(booking_id))
    if not may_view_booking(actor, booking):
        raise AuthorizationError("You don't have permission to access this booking")
    return booking


@router.post("/{booking_id}/transition", response_model=BookingResponse)
async def transition_booking(
    booking_id: UUID,
    request: BookingTransitionRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    engine: Annotated[LifecycleEngine, Depends(get_lifecycle_engine)],
) -> Booking:
    """Move a booking to a new status."""
    return await engine.request_transition(booking_id, request.status, actor, message=request.message)


@router.put("/{booking_id}/assign", response_model=BookingResponse)
async def assign_cleaner(
    booking_id: UUID,
    request: BookingAssignRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    engine: Annotated[LifecycleEngine, Depends(get_lifecycle_engine)],
) -> Booking:
    """Assign an available cleaner to a pending booking (admin only)."""
    return await engine.assign_cleaner(booking_id, request.cleaner_id, actor)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    actor: Annotated[Actor, Depends(require_customer)],
    engine: Annotated[LifecycleEngine, Depends(get_lifecycle_engine)],
) -> Booking:
    """Cancel one of your own bookings while it is PENDING or CONFIRMED."""
    return await engine.request_transition(booking_id, BookingStatus.CANCELLED, actor)
