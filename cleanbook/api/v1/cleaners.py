"""Cleaner profile and availability endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cleanbook.api.deps import get_db, require_admin, require_cleaner
from cleanbook.core.exceptions import NotFoundError
from cleanbook.core.permissions import Actor
from cleanbook.models.user import CleanerProfile
from cleanbook.repositories.booking_repository import BookingRepository
from cleanbook.schemas.user import CleanerProfileResponse, CleanerProfileUpdate, CleanerSummary

router = APIRouter()


@router.get("/", response_model=list[CleanerSummary])
async def list_cleaners(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    available: bool | None = Query(default=None),
) -> list[CleanerSummary]:
    """List active cleaners, optionally only those accepting assignments."""
    cleaners = await BookingRepository(db).list_cleaners(available=available)
    return [
        CleanerSummary(
            id=c.id,
            name=c.name,
            email=c.email,
            is_available=bool(c.cleaner_profile and c.cleaner_profile.is_available),
        )
        for c in cleaners
    ]


@router.get("/me", response_model=CleanerProfileResponse)
async def get_my_profile(
    actor: Annotated[Actor, Depends(require_cleaner)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CleanerProfile:
    """Get the current cleaner's profile."""
    profile = await BookingRepository(db).get_cleaner_profile(actor.user_id)
    if not profile:
        raise NotFoundError("Cleaner profile")
    return profile


@router.put("/me", response_model=CleanerProfileResponse)
async def update_my_profile(
    updates: CleanerProfileUpdate,
    actor: Annotated[Actor, Depends(require_cleaner)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CleanerProfile:
    """Update bio, experience or availability."""
    repo = BookingRepository(db)
    profile = await repo.get_cleaner_profile(actor.user_id)
    if not profile:
        raise NotFoundError("Cleaner profile")

    for field, value in updates.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(profile, field, value)

    await repo.save()
    return profile
