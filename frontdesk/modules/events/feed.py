"""
Change notifications for calendar data.

Delivery is at-least-once and unordered: subscribers must treat every event
as "something changed, re-read" rather than as a diff.
"""
import uuid
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from frontdesk.platform.ports.event_bus import EventBusPort, Unsubscribe

log = logging.getLogger(__name__)

TOPIC_EXCEPTIONS = "frontdesk.exceptions.changed"
TOPIC_APPOINTMENTS = "frontdesk.appointments.changed"


@dataclass(frozen=True)
class ChangeEvent:
    clinic_id: uuid.UUID | None
    event_type: str
    subject_type: str | None = None
    subject_id: str | None = None
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_message(cls, value: dict) -> "ChangeEvent":
        raw_clinic = value.get("clinic_id")
        try:
            clinic_id = uuid.UUID(str(raw_clinic)) if raw_clinic else None
        except ValueError:
            log.warning("Change event with malformed clinic_id=%r", raw_clinic)
            clinic_id = None
        subject = value.get("subject") or {}
        return cls(
            clinic_id=clinic_id,
            event_type=value.get("event_type", ""),
            subject_type=subject.get("type"),
            subject_id=subject.get("id"),
            payload=value.get("payload") or {},
        )


ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


class CalendarChangeFeed:
    def __init__(self, bus: EventBusPort):
        self.bus = bus

    def _subscribe(self, topic: str, callback: ChangeCallback) -> Unsubscribe:
        async def handler(_topic: str, value: dict) -> None:
            await callback(ChangeEvent.from_message(value))
        return self.bus.subscribe(topic, handler)

    def on_exceptions_changed(self, callback: ChangeCallback) -> Unsubscribe:
        return self._subscribe(TOPIC_EXCEPTIONS, callback)

    def on_appointments_changed(self, callback: ChangeCallback) -> Unsubscribe:
        return self._subscribe(TOPIC_APPOINTMENTS, callback)
