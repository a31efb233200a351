"""Appointment service for business logic."""

import hashlib
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from physiobook.core.events import AppointmentEvent, AppointmentEventKind, EventBus, event_bus
from physiobook.core.exceptions import (
    ConflictException,
    DataIntegrityException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from physiobook.models.appointments import appointments
from physiobook.models.profiles import profiles
from physiobook.schemas.appointments import (
    AdminAppointmentListResponse,
    AdminAppointmentResponse,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    ensure_utc,
)
from physiobook.services.appointment_lifecycle import (
    Actor,
    AppointmentPolicy,
    check_reopen,
    check_transition,
)
from physiobook.services.appointment_validation import validate_booking_request

logger = structlog.get_logger(__name__)

UNKNOWN_PATIENT_NAME = "Unknown"
UNKNOWN_PATIENT_EMAIL = "No email"


def _hash_idempotency_key(patient_id: UUID, key: str) -> str:
    """Scope a client idempotency key to its patient."""
    return hashlib.sha256(f"{patient_id}:{key}".encode()).hexdigest()


def _enrich(row: dict[str, Any]) -> AdminAppointmentResponse:
    full_name = " ".join(
        part for part in (row.pop("profile_first_name"), row.pop("profile_last_name")) if part
    )
    row["patient_name"] = full_name or UNKNOWN_PATIENT_NAME
    row["patient_email"] = row.pop("profile_email") or UNKNOWN_PATIENT_EMAIL
    row["patient_sex"] = row.pop("profile_sex")
    row["patient_age"] = row.pop("profile_age")
    row["patient_phone"] = row.pop("profile_phone")
    row["clinical_notes"] = row.pop("profile_clinical_notes")
    return AdminAppointmentResponse.model_validate(row)


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession, events: EventBus | None = None):
        """Initialize service with database session and event bus."""
        self.db = db
        self.events = events if events is not None else event_bus

    async def _execute(self, stmt: Any) -> Any:
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointment_query_failed", error=str(e))
            raise PersistenceException(f"Appointment store error: {e!s}")

    @staticmethod
    def _parse_id(appointment_id: UUID | str) -> UUID:
        if isinstance(appointment_id, UUID):
            return appointment_id
        try:
            return UUID(str(appointment_id))
        except ValueError:
            raise ValidationException.from_errors(
                [{"field": "id", "message": "Invalid appointment id"}]
            )

    async def _lookup_rows(self, appointment_id: UUID) -> list[dict[str, Any]]:
        """Fetch every row stored under ``appointment_id``."""
        result = await self._execute(select(appointments).where(appointments.c.id == appointment_id))
        return [dict(row._mapping) for row in result.fetchall()]

    async def _get_single(self, appointment_id: UUID) -> dict[str, Any]:
        """
        Load exactly one appointment.

        Raises:
            NotFoundException: No row has this id
            DataIntegrityException: More than one row has this id
        """
        rows = await self._lookup_rows(appointment_id)

        if not rows:
            raise NotFoundException("Appointment not found")

        if len(rows) > 1:
            logger.error(
                "appointment_integrity_violation",
                appointment_id=str(appointment_id),
                row_count=len(rows),
            )
            raise DataIntegrityException(
                f"Found {len(rows)} appointments with id {appointment_id}"
            )

        return rows[0]

    async def _compare_and_set_status(
        self,
        appointment_id: UUID,
        expected: AppointmentStatus,
        target: AppointmentStatus,
    ) -> AppointmentResponse:
        """
        Write a new status only if the stored one is still ``expected``.

        Raises:
            ConflictException: Another writer changed the status first
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == expected.value,
                )
            )
            .values(status=target.value, updated_at=datetime.now(UTC))
            .returning(appointments)
        )

        result = await self._execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        if row is None:
            logger.warning(
                "appointment_transition_conflict",
                appointment_id=str(appointment_id),
                expected_status=expected.value,
                target_status=target.value,
            )
            raise ConflictException(
                "Appointment status changed while processing the request; reload and retry"
            )

        return AppointmentResponse.model_validate(dict(row._mapping))

    async def _find_by_idempotency_key(self, key: str) -> AppointmentResponse | None:
        result = await self._execute(
            select(appointments).where(appointments.c.idempotency_key == key)
        )
        row = result.fetchone()
        return AppointmentResponse.model_validate(dict(row._mapping)) if row else None

    async def create_appointment(
        self,
        patient_id: UUID | str,
        data: AppointmentCreate,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> AppointmentResponse:
        """
        Create a new appointment.

        Args:
            patient_id: ID of the patient creating the appointment
            data: Appointment creation data
            idempotency_key: Optional client key making retries safe
            now: Reference time for the booking window

        Returns:
            Created appointment, or the one previously created with the same key

        Raises:
            ValidationException: Payload breaks an admission rule
            PersistenceException: The store rejected the insert
        """
        now = ensure_utc(now or datetime.now(UTC))

        # A replay must succeed even once the original slot has left the window
        key = None
        if idempotency_key:
            try:
                owner = patient_id if isinstance(patient_id, UUID) else UUID(str(patient_id))
            except ValueError:
                owner = None
            if owner is not None:
                key = _hash_idempotency_key(owner, idempotency_key)
                existing = await self._find_by_idempotency_key(key)
                if existing:
                    logger.info("appointment_create_replayed", appointment_id=str(existing.id))
                    return existing

        errors = validate_booking_request(patient_id, data.service_type, data.scheduled_at, now)
        if errors:
            logger.info(
                "appointment_validation_failed",
                patient_id=str(patient_id),
                fields=[error["field"] for error in errors],
            )
            raise ValidationException.from_errors(errors)

        patient_uuid = patient_id if isinstance(patient_id, UUID) else UUID(str(patient_id))

        persisted_at = datetime.now(UTC)
        values = {
            "patient_id": patient_uuid,
            "service_type": data.service_type,
            "scheduled_at": ensure_utc(data.scheduled_at),
            "notes": data.notes,
            "status": AppointmentStatus.PENDING.value,
            "idempotency_key": key,
            "created_at": persisted_at,
            "updated_at": persisted_at,
        }

        stmt = appointments.insert().values(**values).returning(appointments)

        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if key:
                existing = await self._find_by_idempotency_key(key)
                if existing:
                    logger.info("appointment_create_replayed", appointment_id=str(existing.id))
                    return existing
            logger.error(
                "appointment_create_rejected",
                patient_id=str(patient_uuid),
                error=str(e.orig),
            )
            raise PersistenceException(f"Appointment could not be created: {e.orig!s}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointment_create_failed", patient_id=str(patient_uuid), error=str(e))
            raise PersistenceException(f"Appointment could not be created: {e!s}")

        appointment = AppointmentResponse.model_validate(dict(row._mapping))
        logger.info(
            "appointment_created",
            appointment_id=str(appointment.id),
            patient_id=str(patient_uuid),
            scheduled_at=appointment.scheduled_at.isoformat(),
        )

        await self.events.publish(
            AppointmentEvent(kind=AppointmentEventKind.CREATED, appointment=appointment.model_dump())
        )

        return appointment

    async def get_appointment(
        self,
        appointment_id: UUID | str,
        actor: Actor | None = None,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Args:
            appointment_id: Appointment ID
            actor: Requesting user; patients may only see their own

        Returns:
            Appointment details

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self._get_single(self._parse_id(appointment_id))

        if actor is not None:
            AppointmentPolicy.ensure_view(actor, row["patient_id"])

        return AppointmentResponse.model_validate(row)

    async def list_appointments_for_patient(
        self,
        patient_id: UUID | str,
        status: AppointmentStatus | None = None,
    ) -> AppointmentListResponse:
        """
        List a patient's appointments, earliest first.

        Args:
            patient_id: Patient whose appointments to list
            status: Optional status filter

        Returns:
            Appointments without profile enrichment
        """
        conditions = [appointments.c.patient_id == self._parse_id(patient_id)]
        if status:
            conditions.append(appointments.c.status == status.value)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_at.asc())
        )

        result = await self._execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        return AppointmentListResponse(total=len(items), items=items)

    async def list_all_appointments(
        self,
        status: AppointmentStatus | None = None,
    ) -> AdminAppointmentListResponse:
        """
        List every appointment with the patient's profile fields, earliest first.

        Appointments without a profile are reported with placeholder
        name and email instead of failing the listing.

        Args:
            status: Optional status filter

        Returns:
            Enriched appointments
        """
        stmt = select(
            appointments,
            profiles.c.first_name.label("profile_first_name"),
            profiles.c.last_name.label("profile_last_name"),
            profiles.c.email.label("profile_email"),
            profiles.c.sex.label("profile_sex"),
            profiles.c.age.label("profile_age"),
            profiles.c.phone_number.label("profile_phone"),
            profiles.c.clinical_notes.label("profile_clinical_notes"),
        ).select_from(
            appointments.outerjoin(profiles, profiles.c.id == appointments.c.patient_id)
        )

        if status:
            stmt = stmt.where(appointments.c.status == status.value)

        stmt = stmt.order_by(appointments.c.scheduled_at.asc())

        result = await self._execute(stmt)
        items = [_enrich(dict(row._mapping)) for row in result.fetchall()]

        return AdminAppointmentListResponse(total=len(items), items=items)

    async def transition_appointment(
        self,
        appointment_id: UUID | str,
        target_status: AppointmentStatus | str,
        actor: Actor | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new status.

        Repeating the current status of a non-terminal appointment is a
        no-op: nothing is written and no notification is sent.

        Args:
            appointment_id: Appointment ID
            target_status: Requested status
            actor: Requesting user, checked against the access policy

        Returns:
            Appointment after the transition

        Raises:
            ValidationException: Malformed id or unknown status
            NotFoundException: No appointment with this id
            DataIntegrityException: Several appointments share this id
            ForbiddenException: Actor may not perform this change
            InvalidTransitionException: Lifecycle forbids the change
            ConflictException: A concurrent change won the race
        """
        errors: list[dict[str, Any]] = []
        parsed_id: UUID | None = None
        target: AppointmentStatus | None = None

        try:
            parsed_id = self._parse_id(appointment_id)
        except ValidationException as e:
            errors.extend(e.errors)

        try:
            target = AppointmentStatus(target_status)
        except ValueError:
            errors.append({"field": "status", "message": f"Unknown status: {target_status}"})

        if errors:
            raise ValidationException.from_errors(errors)

        current_row = await self._get_single(parsed_id)
        current = AppointmentStatus(current_row["status"])

        if actor is not None:
            AppointmentPolicy.ensure_view(actor, current_row["patient_id"])

        try:
            changed = check_transition(current, target)
        except InvalidTransitionException as e:
            logger.info(
                "appointment_transition_rejected",
                appointment_id=str(parsed_id),
                current_status=current.value,
                target_status=target.value,
                reason=e.message,
            )
            raise

        if actor is not None:
            AppointmentPolicy.ensure_transition(actor, current_row["patient_id"], current, target)

        if not changed:
            logger.info(
                "appointment_transition_noop",
                appointment_id=str(parsed_id),
                status=current.value,
            )
            return AppointmentResponse.model_validate(current_row)

        appointment = await self._compare_and_set_status(parsed_id, current, target)

        logger.info(
            "appointment_status_changed",
            appointment_id=str(parsed_id),
            old_status=current.value,
            new_status=target.value,
            actor_id=str(actor.id) if actor else None,
        )

        await self.events.publish(
            AppointmentEvent(
                kind=AppointmentEventKind.UPDATED,
                appointment=appointment.model_dump(),
                previous_status=current.value,
            )
        )

        return appointment

    async def cancel_appointment(
        self,
        appointment_id: UUID | str,
        actor: Actor | None = None,
    ) -> AppointmentResponse:
        """Cancel an appointment."""
        return await self.transition_appointment(
            appointment_id, AppointmentStatus.CANCELLED, actor=actor
        )

    async def reopen_appointment(
        self,
        appointment_id: UUID | str,
        actor: Actor | None = None,
        now: datetime | None = None,
    ) -> AppointmentResponse:
        """
        Move a confirmed or cancelled future appointment back to pending.

        Staff-only undo, kept apart from ``transition_appointment`` so the
        generic lifecycle never leaves a terminal status.

        Args:
            appointment_id: Appointment ID
            actor: Staff member performing the undo
            now: Reference time

        Returns:
            Reopened appointment
        """
        parsed_id = self._parse_id(appointment_id)
        now = ensure_utc(now or datetime.now(UTC))

        if actor is not None and not AppointmentPolicy.can_reopen(actor):
            raise ForbiddenException("Only clinic staff can reopen appointments")

        current_row = await self._get_single(parsed_id)
        current = AppointmentStatus(current_row["status"])

        check_reopen(current, current_row["scheduled_at"], now)

        appointment = await self._compare_and_set_status(
            parsed_id, current, AppointmentStatus.PENDING
        )

        logger.info(
            "appointment_reopened",
            appointment_id=str(parsed_id),
            old_status=current.value,
            actor_id=str(actor.id) if actor else None,
            actor_role=actor.role.value if actor else None,
        )

        await self.events.publish(
            AppointmentEvent(
                kind=AppointmentEventKind.UPDATED,
                appointment=appointment.model_dump(),
                previous_status=current.value,
            )
        )

        return appointment
