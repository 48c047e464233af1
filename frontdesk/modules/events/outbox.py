import uuid
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import TIMESTAMP, String, Integer, Text, JSON, select, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from frontdesk.core.base import Base, TimestampedMixin
from frontdesk.core.config import settings
from frontdesk.platform.ports.event_bus import EventBusPort
from frontdesk.platform.provider_registry import registry
from frontdesk.modules.events.feed import TOPIC_APPOINTMENTS, TOPIC_EXCEPTIONS

log = logging.getLogger("event.outbox")

TOPIC_BY_SUBJECT = {
    "appointment": TOPIC_APPOINTMENTS,
    "schedule_exception": TOPIC_EXCEPTIONS,
    "holiday": TOPIC_EXCEPTIONS,
}

class EventOutbox(Base, TimestampedMixin):
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    topic: Mapped[str] = mapped_column(String(64))
    event_type: Mapped[str] = mapped_column(String(64))
    subject_type: Mapped[str] = mapped_column(String(32))
    subject_id: Mapped[str] = mapped_column(String(64))
    payload: Mapped[dict] = mapped_column(JSON)

    occurred_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending | processing | sent
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    next_attempt_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

class OutboxRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def enqueue(self, clinic_id: uuid.UUID | None, *, event_type: str, subject_type: str, subject_id: str, payload: dict, occurred_at: datetime | None = None) -> EventOutbox:
        now = datetime.now(timezone.utc)
        obj = EventOutbox(
            clinic_id=clinic_id,
            topic=TOPIC_BY_SUBJECT.get(subject_type, TOPIC_APPOINTMENTS),
            event_type=event_type,
            subject_type=subject_type,
            subject_id=str(subject_id),
            payload=payload,
            occurred_at=occurred_at or now,
            status="pending",
            attempts=0,
            next_attempt_at=now,
        )
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def claim_batch(self, limit: int = 50) -> list[EventOutbox]:
        # SELECT ... FOR UPDATE SKIP LOCKED
        q = (
            select(EventOutbox)
            .where(
                and_(
                    EventOutbox.status == "pending",
                    EventOutbox.next_attempt_at <= datetime.now(timezone.utc),
                )
            )
            .order_by(EventOutbox.occurred_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        res = await self.session.execute(q)
        rows = list(res.scalars().all())
        # mark as processing
        for r in rows:
            r.status = "processing"
        await self.session.flush()
        return rows

    async def mark_sent(self, obj: EventOutbox):
        obj.status = "sent"
        obj.last_error = None
        await self.session.flush()

    async def mark_failed(self, obj: EventOutbox, error: str):
        obj.status = "pending"  # retry
        obj.attempts = (obj.attempts or 0) + 1
        backoff = min(60, 2 ** min(obj.attempts, 6))  # 2,4,8,16,32,60s
        obj.next_attempt_at = datetime.now(timezone.utc) + timedelta(seconds=backoff)
        obj.last_error = error[:2000]  # truncate
        await self.session.flush()

class OutboxService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = OutboxRepository(session)

    async def enqueue(self, clinic_id: uuid.UUID | None, event_type: str, subject_type: str, subject_id: str | uuid.UUID, payload: dict, occurred_at: datetime | None = None) -> EventOutbox:
        return await self.repo.enqueue(clinic_id, event_type=event_type, subject_type=subject_type, subject_id=str(subject_id), payload=payload, occurred_at=occurred_at)

# ---- Background relay ----

async def relay_once(session_factory: async_sessionmaker, bus: EventBusPort, limit: int = 50) -> int:
    """Publish one batch of pending events; returns how many were sent."""
    sent = 0
    async with session_factory() as session:
        repo = OutboxRepository(session)
        try:
            batch = await repo.claim_batch(limit=limit)
            for ev in batch:
                try:
                    await bus.publish(topic=ev.topic, key=ev.subject_id or "-", value={
                        "clinic_id": str(ev.clinic_id) if ev.clinic_id else None,
                        "event_type": ev.event_type,
                        "subject": {"type": ev.subject_type, "id": ev.subject_id},
                        "payload": ev.payload,
                        "occurred_at": ev.occurred_at.isoformat(),
                        "outbox_id": str(ev.id),
                    })
                    await repo.mark_sent(ev)
                    sent += 1
                except Exception as ex:  # noqa
                    log.exception("Publish failed")
                    await repo.mark_failed(ev, error=str(ex))
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return sent

async def run_outbox_relay(session_factory: async_sessionmaker, poll_interval_seconds: float | None = None):
    bus = registry.event_bus()
    interval = poll_interval_seconds or settings.OUTBOX_POLL_SECONDS
    log.info("Outbox relay started with bus=%s", bus.__class__.__name__)
    try:
        while True:
            try:
                sent = await relay_once(session_factory, bus)
            except Exception:
                log.exception("Outbox relay iteration failed")
                sent = 0
            if not sent:
                await asyncio.sleep(interval)
            else:
                await asyncio.sleep(0)  # yield
    except asyncio.CancelledError:
        log.info("Outbox relay cancelled; shutting down")
        raise
