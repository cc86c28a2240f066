"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from cleanbook.api.v1 import admin, bookings, cleaners, realtime

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Cleaners
api_router.include_router(cleaners.router, prefix="/cleaners", tags=["Cleaners"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Realtime
api_router.include_router(realtime.router, tags=["Realtime"])
