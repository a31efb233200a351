"""Notification model for appointment notices and their delivery state."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("recipient_id", Uuid, nullable=False),
    Column("appointment_id", Uuid, nullable=True),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("kind", String(50), nullable=False),
    Column("read", Boolean, nullable=False, server_default=text("false")),
    Column("externally_delivered", Boolean, nullable=False, server_default=text("false")),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "kind IN ('appointment_created', 'appointment_updated', 'appointment_reminder')",
        name="notifications_kind_check",
    ),
    Index("idx_notifications_recipient_id", "recipient_id"),
    Index("idx_notifications_recipient_read", "recipient_id", "read"),
    Index("idx_notifications_created_at", "created_at"),
)
