"""Notification schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, field_validator

from physiobook.schemas.appointments import ensure_utc


class NotificationKind(str, Enum):
    """Notification kind enumeration."""

    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_UPDATED = "appointment_updated"
    APPOINTMENT_REMINDER = "appointment_reminder"


class NotificationRecord(BaseModel):
    """Schema for a stored notification."""

    id: UUID
    recipient_id: UUID
    appointment_id: UUID | None = None
    title: str
    message: str
    kind: NotificationKind
    read: bool
    externally_delivered: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        """Tag timestamps read back from the store as UTC."""
        return ensure_utc(v)


class NotificationListResponse(BaseModel):
    """Schema for a user's notifications."""

    total: int
    unread: int
    items: list[NotificationRecord]


class MarkAllReadResponse(BaseModel):
    """Schema for bulk read acknowledgement."""

    updated: int
