"""Notification service for appointment notices and Telegram delivery."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, desc, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from physiobook.config import settings
from physiobook.core.events import AppointmentEvent
from physiobook.core.exceptions import PersistenceException, TransportException
from physiobook.core.telegram import TelegramClient, get_telegram_client
from physiobook.models.appointments import appointments
from physiobook.models.notifications import notifications
from physiobook.schemas.appointments import AppointmentStatus, ensure_utc
from physiobook.schemas.notifications import NotificationKind

logger = structlog.get_logger(__name__)

NOTIFICATION_TITLES = {
    NotificationKind.APPOINTMENT_CREATED: "New Appointment Scheduled",
    NotificationKind.APPOINTMENT_UPDATED: "Appointment Updated",
    NotificationKind.APPOINTMENT_REMINDER: "Appointment Reminder",
}

NOTIFICATION_MESSAGES = {
    NotificationKind.APPOINTMENT_CREATED: (
        "A new {service_type} appointment has been scheduled for {when}."
    ),
    NotificationKind.APPOINTMENT_UPDATED: (
        "Your {service_type} appointment for {when} has been updated."
    ),
    NotificationKind.APPOINTMENT_REMINDER: (
        "Reminder: you have a {service_type} appointment on {when}."
    ),
}


def _as_uuid(value: str | UUID) -> UUID:
    return UUID(value) if isinstance(value, str) else value


class NotificationService:
    """Service for appointment notifications."""

    @staticmethod
    def compose(
        kind: NotificationKind,
        scheduled_at: datetime,
        service_type: str,
    ) -> tuple[str, str]:
        """
        Build the title and message for a notification.

        Args:
            kind: Notification kind
            scheduled_at: Appointment start time
            service_type: Booked service

        Returns:
            Tuple of (title, message)
        """
        when = ensure_utc(scheduled_at).strftime("%b %d, %Y %I:%M %p UTC")
        message = NOTIFICATION_MESSAGES[kind].format(service_type=service_type, when=when)
        return NOTIFICATION_TITLES[kind], message

    @staticmethod
    async def notify(
        db: AsyncSession,
        recipient_id: str | UUID,
        kind: NotificationKind | str,
        scheduled_at: datetime,
        service_type: str,
        appointment_id: str | UUID | None = None,
        telegram: TelegramClient | None = None,
    ) -> dict[str, Any] | None:
        """
        Store a notification and try to forward it to Telegram.

        Never raises: a malformed id or kind, or a storage failure, returns None and a delivery failure
        leaves ``externally_delivered`` false.

        Args:
            db: Database session
            recipient_id: Patient receiving the notice
            kind: Notification kind
            scheduled_at: Appointment start time
            service_type: Booked service
            appointment_id: Related appointment
            telegram: Delivery client (defaults to the configured one)

        Returns:
            Stored notification record, or None if it could not be stored
        """
        try:
            kind = NotificationKind(kind)
            recipient = _as_uuid(recipient_id)
            related = _as_uuid(appointment_id) if appointment_id else None
            title, message = NotificationService.compose(kind, scheduled_at, service_type)
        except (ValueError, AttributeError) as e:
            logger.error(
                "notification_rejected",
                recipient_id=str(recipient_id),
                kind=str(kind),
                error=str(e),
            )
            return None

        now = datetime.now(UTC)

        try:
            result = await db.execute(
                insert(notifications)
                .values(
                    recipient_id=recipient,
                    appointment_id=related,
                    title=title,
                    message=message,
                    kind=kind.value,
                    read=False,
                    externally_delivered=False,
                    created_at=now,
                    updated_at=now,
                )
                .returning(notifications)
            )
            record = dict(result.fetchone()._mapping)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "notification_persist_failed",
                recipient_id=str(recipient_id),
                kind=kind.value,
                error=str(e),
            )
            return None

        telegram = telegram or get_telegram_client()

        try:
            delivered = await telegram.send_message(title, message)
        except TransportException as e:
            logger.warning(
                "telegram_delivery_failed",
                notification_id=str(record["id"]),
                error=e.message,
            )
            return record

        if delivered:
            try:
                await db.execute(
                    update(notifications)
                    .where(notifications.c.id == record["id"])
                    .values(externally_delivered=True, updated_at=datetime.now(UTC))
                )
                await db.commit()
                record["externally_delivered"] = True
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(
                    "notification_delivery_flag_failed",
                    notification_id=str(record["id"]),
                    error=str(e),
                )

        logger.info(
            "notification_created",
            notification_id=str(record["id"]),
            kind=kind.value,
            externally_delivered=record["externally_delivered"],
        )
        return record

    @staticmethod
    async def get_user_notifications(
        db: AsyncSession,
        recipient_id: str | UUID,
        unread_only: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Get notifications for a user, newest first.

        Args:
            db: Database session
            recipient_id: User ID
            unread_only: Only return unread notifications

        Returns:
            List of notification records
        """
        query = select(notifications).where(
            notifications.c.recipient_id == _as_uuid(recipient_id)
        )
        if unread_only:
            query = query.where(notifications.c.read.is_(False))

        query = query.order_by(desc(notifications.c.created_at))

        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceException(f"Failed to load notifications: {e!s}")

        return [dict(row._mapping) for row in result.fetchall()]

    @staticmethod
    async def mark_as_read(
        db: AsyncSession,
        notification_id: str | UUID,
        recipient_id: str | UUID,
    ) -> bool:
        """
        Mark a notification as read.

        Args:
            db: Database session
            notification_id: Notification ID
            recipient_id: User ID; must own the notification

        Returns:
            True if updated, False if no notification matches both ids
        """
        try:
            result = await db.execute(
                update(notifications)
                .where(
                    notifications.c.id == _as_uuid(notification_id),
                    notifications.c.recipient_id == _as_uuid(recipient_id),
                )
                .values(read=True, updated_at=datetime.now(UTC))
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceException(f"Failed to update notification: {e!s}")

        return result.rowcount > 0

    @staticmethod
    async def mark_all_as_read(
        db: AsyncSession,
        recipient_id: str | UUID,
    ) -> int:
        """
        Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        try:
            result = await db.execute(
                update(notifications)
                .where(
                    notifications.c.recipient_id == _as_uuid(recipient_id),
                    notifications.c.read.is_(False),
                )
                .values(read=True, updated_at=datetime.now(UTC))
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceException(f"Failed to update notifications: {e!s}")

        return result.rowcount

    @staticmethod
    async def _release_reminder_claim(
        db: AsyncSession,
        appointment_id: UUID,
        claimed_at: datetime,
    ) -> None:
        """Clear a reminder claim taken at ``claimed_at`` so a later run retries it."""
        try:
            await db.execute(
                update(appointments)
                .where(
                    appointments.c.id == appointment_id,
                    appointments.c.reminder_sent_at == claimed_at,
                )
                .values(reminder_sent_at=None)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceException(f"Failed to release reminder claim: {e!s}")

        logger.warning("appointment_reminder_released", appointment_id=str(appointment_id))

    @staticmethod
    async def send_due_reminders(
        db: AsyncSession,
        now: datetime | None = None,
        hours_ahead: int | None = None,
        telegram: TelegramClient | None = None,
    ) -> int:
        """
        Send reminders for confirmed appointments starting soon.

        Each appointment is claimed with a conditional update on
        ``reminder_sent_at`` so concurrent runs never remind twice.

        Args:
            db: Database session
            now: Reference time
            hours_ahead: Reminder horizon in hours
            telegram: Delivery client

        Returns:
            Number of reminders sent
        """
        now = ensure_utc(now or datetime.now(UTC))
        if hours_ahead is None:
            hours_ahead = settings.reminder_hours_ahead
        horizon = now + timedelta(hours=hours_ahead)

        try:
            result = await db.execute(
                select(appointments)
                .where(
                    and_(
                        appointments.c.status == AppointmentStatus.CONFIRMED.value,
                        appointments.c.scheduled_at > now,
                        appointments.c.scheduled_at <= horizon,
                        appointments.c.reminder_sent_at.is_(None),
                    )
                )
                .order_by(appointments.c.scheduled_at)
            )
            due = [dict(row._mapping) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise PersistenceException(f"Failed to load due reminders: {e!s}")

        sent = 0
        for appointment in due:
            try:
                claim = await db.execute(
                    update(appointments)
                    .where(
                        appointments.c.id == appointment["id"],
                        appointments.c.reminder_sent_at.is_(None),
                    )
                    .values(reminder_sent_at=now)
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceException(f"Failed to claim reminder: {e!s}")

            if claim.rowcount != 1:
                continue

            record = await NotificationService.notify(
                db=db,
                recipient_id=appointment["patient_id"],
                kind=NotificationKind.APPOINTMENT_REMINDER,
                scheduled_at=appointment["scheduled_at"],
                service_type=appointment["service_type"],
                appointment_id=appointment["id"],
                telegram=telegram,
            )

            if record is None:
                await NotificationService._release_reminder_claim(db, appointment["id"], now)
                continue

            sent += 1

        logger.info("appointment_reminders_sent", count=sent, horizon=horizon.isoformat())
        return sent


class NotificationListener:
    """
    Event handler turning appointment events into notifications.

    Uses its own database session so a notification failure can never
    disturb the session that committed the appointment change.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        telegram: TelegramClient | None = None,
    ):
        """Initialize with a session factory and optional delivery client."""
        self._session_factory = session_factory
        self._telegram = telegram

    async def __call__(self, event: AppointmentEvent) -> None:
        """Handle one appointment event."""
        appointment = event.appointment
        kind = NotificationKind(event.kind.value)

        async with self._session_factory() as db:
            await NotificationService.notify(
                db=db,
                recipient_id=appointment["patient_id"],
                kind=kind,
                scheduled_at=appointment["scheduled_at"],
                service_type=appointment["service_type"],
                appointment_id=appointment["id"],
                telegram=self._telegram,
            )
