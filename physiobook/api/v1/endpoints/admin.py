"""Staff-only endpoints for the clinic dashboard."""

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from physiobook.dependencies import CurrentStaff, DatabaseSession
from physiobook.schemas.appointments import AdminAppointmentListResponse, AppointmentStatus
from physiobook.services.appointment_service import AppointmentService
from physiobook.services.notification_service import NotificationService

router = APIRouter(prefix="/admin", tags=["Admin"])


class ReminderRunResponse(BaseModel):
    """Result of a reminder sweep."""

    sent: int


@router.get(
    "/appointments",
    response_model=AdminAppointmentListResponse,
    summary="List all appointments (staff only)",
)
async def list_all_appointments(
    db: DatabaseSession,
    staff: CurrentStaff,
    status_filter: AppointmentStatus | None = Query(
        None, alias="status", description="Filter by status"
    ),
) -> AdminAppointmentListResponse:
    """
    List every patient's appointments with their profile details.

    Requires staff or admin role.

    Args:
        db: Database session
        staff: Authenticated staff member
        status_filter: Filter by status

    Returns:
        Enriched appointments, earliest first
    """
    service = AppointmentService(db)
    return await service.list_all_appointments(status=status_filter)


@router.post(
    "/reminders/run",
    response_model=ReminderRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Send due appointment reminders (staff only)",
)
async def run_reminders(
    db: DatabaseSession,
    staff: CurrentStaff,
    hours_ahead: int | None = Query(None, ge=1, le=168),
) -> ReminderRunResponse:
    """Remind patients of confirmed appointments starting soon."""
    sent = await NotificationService.send_due_reminders(db, hours_ahead=hours_ahead)
    return ReminderRunResponse(sent=sent)
