"""Tests for notifications, Telegram delivery and appointment events."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import insert, select
from sqlalchemy.exc import OperationalError

from physiobook.core.events import AppointmentEvent, AppointmentEventKind, EventBus
from physiobook.core.exceptions import TransportException
from physiobook.core.telegram import TelegramClient
from physiobook.models.appointments import appointments
from physiobook.models.notifications import notifications
from physiobook.schemas.notifications import NotificationKind
from physiobook.services.notification_service import NotificationService

API_BASE = "https://telegram.test"


class TelegramAPI:
    """Records sendMessage calls and answers with a configurable status."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"ok": self.status_code == 200})

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def telegram_api() -> TelegramAPI:
    return TelegramAPI()


@pytest.fixture
def telegram_client(telegram_api: TelegramAPI) -> TelegramClient:
    """Configured client talking to the recorded fake API."""
    return TelegramClient(
        bot_token="123:abc",
        chat_id="-1001",
        api_base=API_BASE,
        transport=httpx.MockTransport(telegram_api),
    )


async def _stored_notifications(db_session, recipient_id) -> list[dict]:
    result = await db_session.execute(
        select(notifications)
        .where(notifications.c.recipient_id == recipient_id)
        .order_by(notifications.c.created_at)
    )
    return [dict(row._mapping) for row in result.fetchall()]


# Telegram client


@pytest.mark.asyncio
async def test_telegram_payload(telegram_client: TelegramClient, telegram_api: TelegramAPI) -> None:
    delivered = await telegram_client.send_message("Appointment Reminder", "See you tomorrow")

    assert delivered is True
    assert str(telegram_api.requests[0].url) == f"{API_BASE}/bot123:abc/sendMessage"
    assert telegram_api.payloads == [
        {
            "chat_id": "-1001",
            "text": "🔔 *Appointment Reminder*\n\nSee you tomorrow",
            "parse_mode": "Markdown",
        }
    ]


@pytest.mark.asyncio
async def test_telegram_unconfigured_skips_delivery() -> None:
    client = TelegramClient(bot_token="", chat_id="")
    assert await client.send_message("Title", "Body") is False


@pytest.mark.asyncio
async def test_telegram_error_status(
    telegram_client: TelegramClient,
    telegram_api: TelegramAPI,
) -> None:
    telegram_api.status_code = 500
    with pytest.raises(TransportException):
        await telegram_client.send_message("Title", "Body")


@pytest.mark.asyncio
async def test_telegram_timeout(telegram_client: TelegramClient, telegram_api: TelegramAPI) -> None:
    telegram_api.error = httpx.ReadTimeout("timed out")
    with pytest.raises(TransportException, match="Timeout"):
        await telegram_client.send_message("Title", "Body")


# Event bus


@pytest.mark.asyncio
async def test_event_bus_isolates_failing_handler() -> None:
    bus = EventBus()
    failing = AsyncMock(side_effect=RuntimeError("boom"))
    healthy = AsyncMock()
    bus.subscribe(failing)
    bus.subscribe(healthy)

    event = AppointmentEvent(kind=AppointmentEventKind.CREATED, appointment={"id": uuid4()})
    await bus.publish(event)

    failing.assert_awaited_once_with(event)
    healthy.assert_awaited_once_with(event)


# Notification service


@pytest.mark.asyncio
async def test_notify_marks_external_delivery(
    db_session,
    telegram_client: TelegramClient,
    telegram_api: TelegramAPI,
) -> None:
    recipient_id = uuid4()
    record = await NotificationService.notify(
        db=db_session,
        recipient_id=recipient_id,
        kind=NotificationKind.APPOINTMENT_CREATED,
        scheduled_at=datetime(2030, 3, 5, 14, 30, tzinfo=UTC),
        service_type="Physical Therapy",
        telegram=telegram_client,
    )

    assert record is not None
    assert record["externally_delivered"] is True
    assert record["title"] == "New Appointment Scheduled"
    assert "Mar 05, 2030 02:30 PM UTC" in record["message"]
    assert len(telegram_api.requests) == 1

    stored = await _stored_notifications(db_session, recipient_id)
    assert stored[0]["externally_delivered"] is True


@pytest.mark.asyncio
async def test_notify_keeps_record_when_webhook_fails(
    db_session,
    telegram_client: TelegramClient,
    telegram_api: TelegramAPI,
) -> None:
    telegram_api.status_code = 500
    recipient_id = uuid4()

    record = await NotificationService.notify(
        db=db_session,
        recipient_id=recipient_id,
        kind=NotificationKind.APPOINTMENT_UPDATED,
        scheduled_at=datetime(2030, 3, 5, 14, 30, tzinfo=UTC),
        service_type="Rehabilitation",
        telegram=telegram_client,
    )

    assert record is not None
    assert record["externally_delivered"] is False
    assert len(await _stored_notifications(db_session, recipient_id)) == 1


@pytest.mark.asyncio
async def test_notify_returns_none_when_store_fails(
    telegram_client: TelegramClient,
    telegram_api: TelegramAPI,
) -> None:
    db = AsyncMock()
    db.execute.side_effect = OperationalError("INSERT", {}, Exception("database is down"))

    record = await NotificationService.notify(
        db=db,
        recipient_id=uuid4(),
        kind=NotificationKind.APPOINTMENT_CREATED,
        scheduled_at=datetime(2030, 3, 5, 14, 30, tzinfo=UTC),
        service_type="Physical Therapy",
        telegram=telegram_client,
    )

    assert record is None
    db.rollback.assert_awaited_once()
    assert telegram_api.requests == []


# End to end


@pytest.mark.asyncio
async def test_booking_succeeds_when_webhook_fails(
    client: AsyncClient,
    auth_headers: dict,
    test_user: dict,
    sample_appointment_data: dict,
    telegram_api: TelegramAPI,
    db_session,
) -> None:
    """A Telegram outage never fails the booking itself."""
    telegram_api.status_code = 500

    response = await client.post(
        "/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers
    )

    assert response.status_code == 201
    assert len(telegram_api.requests) == 1
    stored = await _stored_notifications(db_session, test_user["id"])
    assert len(stored) == 1
    assert stored[0]["externally_delivered"] is False
    assert stored[0]["kind"] == "appointment_created"


@pytest.mark.asyncio
async def test_booking_succeeds_when_webhook_unreachable(
    client: AsyncClient,
    auth_headers: dict,
    sample_appointment_data: dict,
    telegram_api: TelegramAPI,
) -> None:
    telegram_api.error = httpx.ConnectError("connection refused")

    response = await client.post(
        "/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_status_change_notifies_patient(
    client: AsyncClient,
    auth_headers: dict,
    staff_headers: dict,
    test_user: dict,
    sample_appointment_data: dict,
    telegram_api: TelegramAPI,
    db_session,
) -> None:
    created = await client.post(
        "/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers
    )
    await client.patch(
        f"/api/v1/appointments/{created.json()['id']}/status",
        json={"status": "confirmed"},
        headers=staff_headers,
    )

    stored = await _stored_notifications(db_session, test_user["id"])
    assert [record["kind"] for record in stored] == [
        "appointment_created",
        "appointment_updated",
    ]
    assert all(record["externally_delivered"] for record in stored)
    assert len(telegram_api.requests) == 2


@pytest.mark.asyncio
async def test_get_my_notifications(
    client: AsyncClient,
    auth_headers: dict,
    sample_appointment_data: dict,
) -> None:
    await client.post("/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers)

    response = await client.get("/api/v1/notifications/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["unread"] == 1
    assert data["items"][0]["kind"] == "appointment_created"
    assert data["items"][0]["title"] == "New Appointment Scheduled"


@pytest.mark.asyncio
async def test_mark_notification_read(
    client: AsyncClient,
    auth_headers: dict,
    sample_appointment_data: dict,
) -> None:
    await client.post("/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers)
    listing = await client.get("/api/v1/notifications/", headers=auth_headers)
    notification_id = listing.json()["items"][0]["id"]

    response = await client.patch(
        f"/api/v1/notifications/{notification_id}/read", headers=auth_headers
    )
    assert response.status_code == 204

    unread = await client.get(
        "/api/v1/notifications/", params={"unread_only": True}, headers=auth_headers
    )
    assert unread.json()["total"] == 0


@pytest.mark.asyncio
async def test_cannot_mark_someone_elses_notification(
    client: AsyncClient,
    auth_headers: dict,
    other_headers: dict,
    sample_appointment_data: dict,
) -> None:
    await client.post("/api/v1/appointments/", json=sample_appointment_data, headers=auth_headers)
    listing = await client.get("/api/v1/notifications/", headers=auth_headers)
    notification_id = listing.json()["items"][0]["id"]

    response = await client.patch(
        f"/api/v1/notifications/{notification_id}/read", headers=other_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_mark_all_read(
    client: AsyncClient,
    auth_headers: dict,
    sample_appointment_data: dict,
) -> None:
    for days in (2, 3):
        await client.post(
            "/api/v1/appointments/",
            json={
                **sample_appointment_data,
                "scheduled_at": (datetime.now(UTC) + timedelta(days=days)).isoformat(),
            },
            headers=auth_headers,
        )

    response = await client.post("/api/v1/notifications/read-all", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"updated": 2}

    listing = await client.get("/api/v1/notifications/", headers=auth_headers)
    assert listing.json()["unread"] == 0


@pytest.mark.asyncio
async def test_notifications_require_auth(client: AsyncClient) -> None:
    response = await client.get("/api/v1/notifications/")
    assert response.status_code == 401


# Reminders


async def _confirmed_appointment(db_session, starts_in: timedelta) -> dict:
    now = datetime.now(UTC)
    values = {
        "id": uuid4(),
        "patient_id": uuid4(),
        "service_type": "Physical Therapy",
        "scheduled_at": now + starts_in,
        "status": "confirmed",
        "created_at": now,
        "updated_at": now,
    }
    await db_session.execute(insert(appointments).values(**values))
    await db_session.commit()
    return values


async def _reminder_sent_at(db_session, appointment_id):
    result = await db_session.execute(
        select(appointments.c.reminder_sent_at).where(appointments.c.id == appointment_id)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_unstored_reminder_is_retried(
    db_session,
    telegram_client: TelegramClient,
    monkeypatch,
) -> None:
    """A reminder that could not be stored is not counted and stays due."""
    appointment = await _confirmed_appointment(db_session, timedelta(hours=3))

    monkeypatch.setattr(NotificationService, "notify", AsyncMock(return_value=None))
    sent = await NotificationService.send_due_reminders(db_session, telegram=telegram_client)

    assert sent == 0
    assert await _reminder_sent_at(db_session, appointment["id"]) is None

    monkeypatch.undo()
    sent = await NotificationService.send_due_reminders(db_session, telegram=telegram_client)

    assert sent == 1
    assert await _reminder_sent_at(db_session, appointment["id"]) is not None
    stored = await _stored_notifications(db_session, appointment["patient_id"])
    assert [record["kind"] for record in stored] == ["appointment_reminder"]


@pytest.mark.asyncio
async def test_zero_hour_horizon_sends_nothing(
    db_session,
    telegram_client: TelegramClient,
) -> None:
    appointment = await _confirmed_appointment(db_session, timedelta(hours=3))

    sent = await NotificationService.send_due_reminders(
        db_session, hours_ahead=0, telegram=telegram_client
    )

    assert sent == 0
    assert await _reminder_sent_at(db_session, appointment["id"]) is None


@pytest.mark.asyncio
async def test_notify_rejects_malformed_input(
    db_session,
    telegram_client: TelegramClient,
    telegram_api: TelegramAPI,
) -> None:
    bad_recipient = await NotificationService.notify(
        db=db_session,
        recipient_id="not-a-uuid",
        kind=NotificationKind.APPOINTMENT_CREATED,
        scheduled_at=datetime(2030, 3, 5, 14, 30, tzinfo=UTC),
        service_type="Physical Therapy",
        telegram=telegram_client,
    )
    bad_kind = await NotificationService.notify(
        db=db_session,
        recipient_id=uuid4(),
        kind="appointment_moved",
        scheduled_at=datetime(2030, 3, 5, 14, 30, tzinfo=UTC),
        service_type="Physical Therapy",
        telegram=telegram_client,
    )

    assert bad_recipient is None
    assert bad_kind is None
    assert telegram_api.requests == []
