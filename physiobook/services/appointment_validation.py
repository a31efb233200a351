"""Admission rules for new appointment bookings."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from dateutil.relativedelta import relativedelta

from physiobook.config import settings
from physiobook.schemas.appointments import ServiceType, ensure_utc

OFFERED_SERVICES = frozenset(service.value for service in ServiceType)


def booking_window(now: datetime) -> tuple[datetime, datetime]:
    """
    Get the exclusive bounds a new appointment must fall between.

    Args:
        now: Reference time

    Returns:
        Tuple of (earliest, latest), both exclusive
    """
    now = ensure_utc(now)
    earliest = now + timedelta(minutes=settings.booking_min_lead_minutes)
    latest = now + relativedelta(months=settings.booking_max_ahead_months)
    return earliest, latest


def _parse_scheduled_at(value: datetime | str | None) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def validate_booking_request(
    patient_id: UUID | str | None,
    service_type: str | None,
    scheduled_at: datetime | str | None,
    now: datetime,
) -> list[dict[str, Any]]:
    """
    Check a booking request against the admission rules.

    Args:
        patient_id: Identity requesting the appointment
        service_type: Requested service
        scheduled_at: Requested start time (datetime or ISO-8601 string)
        now: Validation-time reference used for the booking window

    Returns:
        One ``{"field", "message"}`` entry per violated rule, empty when valid
    """
    errors: list[dict[str, Any]] = []

    if not isinstance(patient_id, UUID):
        try:
            UUID(str(patient_id))
        except ValueError:
            errors.append({"field": "patient_id", "message": "Invalid patient id"})

    if not service_type or not service_type.strip():
        errors.append({"field": "service_type", "message": "Service type is required"})
    elif service_type not in OFFERED_SERVICES:
        errors.append(
            {"field": "service_type", "message": f"Unknown service type: {service_type}"}
        )

    parsed = _parse_scheduled_at(scheduled_at)
    if parsed is None:
        errors.append(
            {"field": "scheduled_at", "message": "Please provide a valid date and time"}
        )
    else:
        earliest, latest = booking_window(now)
        if not earliest < parsed < latest:
            errors.append(
                {
                    "field": "scheduled_at",
                    "message": (
                        f"Appointment must be between {settings.booking_min_lead_minutes} "
                        f"minutes and {settings.booking_max_ahead_months} months from now"
                    ),
                }
            )

    return errors
