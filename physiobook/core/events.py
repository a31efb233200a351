"""In-process domain events for appointment side effects."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class AppointmentEventKind(str, Enum):
    """Appointment events, named after the notification they produce."""

    CREATED = "appointment_created"
    UPDATED = "appointment_updated"
    REMINDER = "appointment_reminder"


@dataclass(frozen=True)
class AppointmentEvent:
    """Something that happened to an appointment after it was committed."""

    kind: AppointmentEventKind
    appointment: dict[str, Any]
    previous_status: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[AppointmentEvent], Awaitable[None]]


class EventBus:
    """
    Fan out appointment events to subscribed handlers.

    Every handler runs in isolation: a failing handler is logged and never
    affects the publisher or the remaining handlers.
    """

    def __init__(self) -> None:
        """Initialize with no subscribers."""
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        """Register a handler for every published event."""
        self._handlers.append(handler)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    @property
    def handlers(self) -> list[EventHandler]:
        return list(self._handlers)

    async def publish(self, event: AppointmentEvent) -> None:
        """
        Deliver an event to every handler.

        Args:
            event: Event to deliver
        """
        for handler in self._handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.warning(
                    "event_handler_failed",
                    event_kind=event.kind.value,
                    appointment_id=str(event.appointment.get("id")),
                    handler=getattr(handler, "__name__", type(handler).__name__),
                    error=str(e),
                )


# Application-wide bus; the notification listener subscribes at startup
event_bus = EventBus()


def get_event_bus() -> EventBus:
    """Dependency returning the application event bus."""
    return event_bus
