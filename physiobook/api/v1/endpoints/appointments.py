"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Header, Query, status

from physiobook.dependencies import CurrentActor, CurrentStaff, DatabaseSession, Events
from physiobook.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from physiobook.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    events: Events,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=200),
) -> AppointmentResponse:
    """
    Book an appointment for the authenticated user.

    Sending the same ``Idempotency-Key`` again returns the appointment
    created by the first request instead of booking twice.

    Args:
        data: Appointment creation data
        actor: Authenticated user
        db: Database session
        events: Event bus
        idempotency_key: Optional client generated key

    Returns:
        Created appointment
    """
    service = AppointmentService(db, events)
    return await service.create_appointment(actor.id, data, idempotency_key=idempotency_key)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List own appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
) -> AppointmentListResponse:
    """
    List the authenticated user's appointments, earliest first.

    Args:
        actor: Authenticated user
        db: Database session
        status_filter: Filter by status

    Returns:
        List of appointments
    """
    service = AppointmentService(db)
    return await service.list_appointments_for_patient(actor.id, status=status_filter)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        HTTPException: If appointment not found or access denied
    """
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, actor=actor)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    events: Events,
) -> AppointmentResponse:
    """
    Cancel an appointment.

    Patients can cancel their own pending appointments; staff can cancel
    any pending or confirmed appointment.
    """
    service = AppointmentService(db, events)
    return await service.cancel_appointment(appointment_id, actor=actor)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    staff: CurrentStaff,
    db: DatabaseSession,
    events: Events,
) -> AppointmentResponse:
    """
    Confirm, cancel or complete an appointment (staff only).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        staff: Authenticated staff member
        db: Database session
        events: Event bus

    Returns:
        Updated appointment
    """
    service = AppointmentService(db, events)
    return await service.transition_appointment(appointment_id, data.status, actor=staff)


@router.post(
    "/{appointment_id}/reopen",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reopen appointment",
)
async def reopen_appointment(
    appointment_id: UUID,
    staff: CurrentStaff,
    db: DatabaseSession,
    events: Events,
) -> AppointmentResponse:
    """Move a confirmed or cancelled future appointment back to pending (staff only)."""
    service = AppointmentService(db, events)
    return await service.reopen_appointment(appointment_id, actor=staff)
