"""Appointment status lifecycle and who may drive it."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from physiobook.core.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NoOpTransitionException,
)
from physiobook.schemas.appointments import AppointmentStatus, ensure_utc

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

REOPENABLE_STATUSES = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED})


class Role(str, Enum):
    """Caller role, read from the patient profile."""

    PATIENT = "patient"
    STAFF = "staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of an appointment operation."""

    id: UUID
    role: Role = Role.PATIENT

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.STAFF, Role.ADMIN)


def is_terminal(status: AppointmentStatus) -> bool:
    """Check whether no further generic transition is permitted."""
    return status in TERMINAL_STATUSES


def check_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """
    Decide whether moving from ``current`` to ``target`` is allowed.

    Args:
        current: Status currently stored
        target: Requested status

    Returns:
        True if the change must be written, False if it is a no-op

    Raises:
        NoOpTransitionException: Terminal appointment already has ``target``
        InvalidTransitionException: The lifecycle forbids the change
    """
    if is_terminal(current):
        if current == target:
            raise NoOpTransitionException(f"Appointment is already {current.value}")
        raise InvalidTransitionException(
            f"Appointment is {current.value}; no further status changes are allowed"
        )

    if current == target:
        return False

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionException(
            f"Cannot change appointment status from {current.value} to {target.value}"
        )

    return True


def check_reopen(current: AppointmentStatus, scheduled_at: datetime, now: datetime) -> None:
    """
    Validate moving an appointment back to pending.

    Raises:
        InvalidTransitionException: Status is not reopenable or the slot has passed
    """
    if current not in REOPENABLE_STATUSES:
        raise InvalidTransitionException(f"A {current.value} appointment cannot be reopened")
    if ensure_utc(scheduled_at) <= ensure_utc(now):
        raise InvalidTransitionException("Only future appointments can be reopened")


class AppointmentPolicy:
    """Role-based access rules for appointments."""

    @staticmethod
    def can_view(actor: Actor, patient_id: UUID) -> bool:
        return actor.is_staff or actor.id == patient_id

    @staticmethod
    def can_transition(
        actor: Actor,
        patient_id: UUID,
        current: AppointmentStatus,
        target: AppointmentStatus,
    ) -> bool:
        """Patients may only cancel their own pending appointment."""
        if actor.is_staff:
            return True
        return (
            actor.id == patient_id
            and current == AppointmentStatus.PENDING
            and target == AppointmentStatus.CANCELLED
        )

    @staticmethod
    def can_reopen(actor: Actor) -> bool:
        return actor.is_staff

    @staticmethod
    def can_list_all(actor: Actor) -> bool:
        return actor.is_staff

    @classmethod
    def ensure_view(cls, actor: Actor, patient_id: UUID) -> None:
        if not cls.can_view(actor, patient_id):
            raise ForbiddenException("Access denied to this appointment")

    @classmethod
    def ensure_transition(
        cls,
        actor: Actor,
        patient_id: UUID,
        current: AppointmentStatus,
        target: AppointmentStatus,
    ) -> None:
        if not cls.can_transition(actor, patient_id, current, target):
            raise ForbiddenException("Not allowed to change this appointment's status")
