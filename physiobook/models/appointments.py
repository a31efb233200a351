"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    Table,
    Text,
    Uuid,
    text,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership
    Column("patient_id", Uuid, nullable=False),
    # Booking details
    Column("service_type", Text, nullable=False),
    Column("scheduled_at", DateTime(timezone=True), nullable=False),
    Column("notes", Text, nullable=True),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="pending",
    ),
    # Client supplied key for safe create retries (hashed per patient)
    Column("idempotency_key", Text, nullable=True, unique=True),
    # Audit fields
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
    Column("reminder_sent_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
        name="appointments_status_check",
    ),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_scheduled_at", "scheduled_at"),
)
