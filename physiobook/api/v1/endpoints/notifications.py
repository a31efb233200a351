"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from physiobook.core.exceptions import NotFoundException
from physiobook.dependencies import CurrentUserId, DatabaseSession
from physiobook.schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRecord,
)
from physiobook.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "/",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get my notifications",
)
async def get_my_notifications(
    user_id: CurrentUserId,
    db: DatabaseSession,
    unread_only: bool = Query(False, description="Only return unread notifications"),
) -> NotificationListResponse:
    """
    Get notifications for the authenticated user, newest first.

    Args:
        user_id: Authenticated user ID
        db: Database session
        unread_only: Only return unread notifications

    Returns:
        Notifications with unread count
    """
    records = await NotificationService.get_user_notifications(
        db=db,
        recipient_id=user_id,
        unread_only=unread_only,
    )
    items = [NotificationRecord.model_validate(record) for record in records]

    return NotificationListResponse(
        total=len(items),
        unread=sum(1 for item in items if not item.read),
        items=items,
    )


@router.patch(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    user_id: CurrentUserId,
    db: DatabaseSession,
) -> None:
    """
    Mark a notification as read.

    Notifications belonging to someone else are reported as not found.

    Raises:
        NotFoundException: If no notification of this user has the ID
    """
    updated = await NotificationService.mark_as_read(
        db=db,
        notification_id=notification_id,
        recipient_id=user_id,
    )

    if not updated:
        raise NotFoundException("Notification not found")


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications as read",
)
async def mark_all_notifications_read(
    user_id: CurrentUserId,
    db: DatabaseSession,
) -> MarkAllReadResponse:
    """Mark every unread notification of the authenticated user as read."""
    updated = await NotificationService.mark_all_as_read(db=db, recipient_id=user_id)
    return MarkAllReadResponse(updated=updated)
