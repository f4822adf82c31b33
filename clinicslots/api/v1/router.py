"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from clinicslots.api.v1 import appointments, clients, health, schedule, settings

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Booking
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["appointments"],
)

api_router.include_router(
    schedule.router,
    prefix="/schedule",
    tags=["schedule"],
)

api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["clients"],
)

# Administration
api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["settings"],
)
