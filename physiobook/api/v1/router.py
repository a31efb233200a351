"""API v1 router configuration."""

from fastapi import APIRouter

from physiobook.api.v1.endpoints import (
    admin,
    appointments,
    health,
    notifications,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(admin.router, tags=["Admin"])
