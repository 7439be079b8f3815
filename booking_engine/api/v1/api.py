# booking_engine/api/v1/api.py

from fastapi import APIRouter
from booking_engine.api.v1.endpoints import (
    bookings,
    admin_bookings,
    public_events,
    health,
)

# This is the main router for the v1 API.
# It will include all the specific endpoint routers.
api_router = APIRouter()

api_router.include_router(bookings.router)
api_router.include_router(admin_bookings.router)
api_router.include_router(public_events.router)
api_router.include_router(health.router)
