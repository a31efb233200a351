"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from physiobook.config import settings
from physiobook.core.telegram import get_telegram_client
from physiobook.database import check_database_connection

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health of the booking store and the notification channel."""

    database: str
    telegram: str
    booking_window: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Report that the API process is up."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Detailed health check.

    Only the database affects the overall status: Telegram delivery is
    best-effort, so an unconfigured bot is reported but not "degraded".

    Returns:
        Database reachability, Telegram configuration and booking window
    """
    db_healthy = await check_database_connection()

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        telegram="configured" if get_telegram_client().is_configured else "disabled",
        booking_window=(
            f"{settings.booking_min_lead_minutes}m to {settings.booking_max_ahead_months}mo"
        ),
    )


@router.get("/ping", status_code=status.HTTP_200_OK, summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
