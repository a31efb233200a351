"""Tests for the appointment status lifecycle and access policy."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from physiobook.core.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NoOpTransitionException,
)
from physiobook.schemas.appointments import AppointmentStatus
from physiobook.services.appointment_lifecycle import (
    Actor,
    AppointmentPolicy,
    Role,
    check_reopen,
    check_transition,
    is_terminal,
)

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
CANCELLED = AppointmentStatus.CANCELLED
COMPLETED = AppointmentStatus.COMPLETED


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (PENDING, CONFIRMED),
        (PENDING, CANCELLED),
        (CONFIRMED, COMPLETED),
        (CONFIRMED, CANCELLED),
    ],
)
def test_allowed_transitions(current, target) -> None:
    assert check_transition(current, target) is True


@pytest.mark.parametrize(("current", "target"), [(PENDING, COMPLETED), (CONFIRMED, PENDING)])
def test_forbidden_transitions(current, target) -> None:
    with pytest.raises(InvalidTransitionException):
        check_transition(current, target)


@pytest.mark.parametrize("status", [PENDING, CONFIRMED])
def test_same_status_on_open_appointment_is_noop(status) -> None:
    assert check_transition(status, status) is False


@pytest.mark.parametrize("terminal", [CANCELLED, COMPLETED])
def test_terminal_statuses_reject_every_target(terminal) -> None:
    """Nothing leaves a terminal status, not even a request for the same one."""
    assert is_terminal(terminal)
    for target in AppointmentStatus:
        with pytest.raises(InvalidTransitionException):
            check_transition(terminal, target)


def test_repeating_terminal_status_is_explicit_noop() -> None:
    with pytest.raises(NoOpTransitionException):
        check_transition(CANCELLED, CANCELLED)


def test_reopen_rules() -> None:
    now = datetime(2024, 1, 1, tzinfo=UTC)
    tomorrow = now + timedelta(days=1)

    check_reopen(CONFIRMED, tomorrow, now)
    check_reopen(CANCELLED, tomorrow, now)

    with pytest.raises(InvalidTransitionException):
        check_reopen(COMPLETED, tomorrow, now)
    with pytest.raises(InvalidTransitionException):
        check_reopen(PENDING, tomorrow, now)
    with pytest.raises(InvalidTransitionException):
        check_reopen(CANCELLED, now - timedelta(hours=1), now)


def test_patient_policy() -> None:
    patient = Actor(id=uuid4())
    stranger = uuid4()

    assert AppointmentPolicy.can_view(patient, patient.id)
    assert not AppointmentPolicy.can_view(patient, stranger)
    assert AppointmentPolicy.can_transition(patient, patient.id, PENDING, CANCELLED)
    assert not AppointmentPolicy.can_transition(patient, patient.id, PENDING, CONFIRMED)
    assert not AppointmentPolicy.can_transition(patient, patient.id, CONFIRMED, CANCELLED)
    assert not AppointmentPolicy.can_transition(patient, stranger, PENDING, CANCELLED)
    assert not AppointmentPolicy.can_reopen(patient)
    assert not AppointmentPolicy.can_list_all(patient)

    with pytest.raises(ForbiddenException):
        AppointmentPolicy.ensure_view(patient, stranger)


@pytest.mark.parametrize("role", [Role.STAFF, Role.ADMIN])
def test_staff_policy(role) -> None:
    staff = Actor(id=uuid4(), role=role)
    assert staff.is_staff
    assert AppointmentPolicy.can_view(staff, uuid4())
    assert AppointmentPolicy.can_transition(staff, uuid4(), CONFIRMED, COMPLETED)
    assert AppointmentPolicy.can_reopen(staff)
    assert AppointmentPolicy.can_list_all(staff)
