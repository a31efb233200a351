"""Appointment schemas for request/response validation."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ServiceType(str, Enum):
    """Services offered by the clinic."""

    PHYSICAL_THERAPY = "Physical Therapy"
    SPORTS_MEDICINE = "Sports Medicine"
    REHABILITATION = "Rehabilitation"


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment.

    Business rules (offered service, booking window) are checked by
    ``validate_booking_request`` so that every violation is reported at once.
    Any ``status`` sent by the client is ignored.
    """

    service_type: str = Field(..., max_length=100)
    scheduled_at: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("scheduled_at")
    @classmethod
    def normalize_scheduled_at(cls, v: datetime) -> datetime:
        """Normalize the requested time to UTC."""
        return ensure_utc(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    service_type: str
    scheduled_at: datetime
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("scheduled_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        """Tag timestamps read back from the store as UTC."""
        return ensure_utc(v)


class AdminAppointmentResponse(AppointmentResponse):
    """Appointment enriched with patient profile fields for staff listings."""

    patient_name: str = "Unknown"
    patient_email: str = "No email"
    patient_sex: str | None = None
    patient_age: int | None = None
    patient_phone: str | None = None
    clinical_notes: str | None = None


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AdminAppointmentListResponse(BaseModel):
    """Schema for the enriched staff appointment list."""

    total: int
    items: list[AdminAppointmentResponse]
