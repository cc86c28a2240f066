"""User and cleaner profile schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cleanbook.core.permissions import UserRole


class UserResponse(BaseModel):
    """Public user fields."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None
    phone: str | None
    role: UserRole
    is_active: bool


class CleanerProfileResponse(BaseModel):
    """Cleaner profile with availability."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    bio: str | None
    experience_years: int | None
    is_available: bool
    updated_at: datetime


class CleanerProfileUpdate(BaseModel):
    """Fields a cleaner may change on their own profile."""

    bio: str | None = Field(None, max_length=2000)
    experience_years: int | None = Field(None, ge=0, le=80)
    is_available: bool | None = None


class CleanerSummary(BaseModel):
    """Cleaner listing entry for assignment screens."""

    id: UUID
    name: str | None
    email: str
    is_available: bool
