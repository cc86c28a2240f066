"""Database models."""

from cleanbook.models.booking import Booking
from cleanbook.models.service import Service
from cleanbook.models.user import CleanerProfile, User

__all__ = [
    # User
    "User",
    "CleanerProfile",
    # Catalog
    "Service",
    # Booking
    "Booking",
]
