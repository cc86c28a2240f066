"""Persistence gateway."""

from cleanbook.repositories.booking_repository import BookingRepository

__all__ = ["BookingRepository"]
