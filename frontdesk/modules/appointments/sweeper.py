"""
Automatic no-show marking.

`NoShowSweeper.sweep` is a single conditional UPDATE (scheduled -> no_show
behind a date predicate), so it converges when several instances run it at
once and marks nothing new when re-run without the clock moving.

Modes:
    day_rollover  scheduled rows dated before today (clinic-local)
    cutoff        additionally today's rows that already started, once the
                  clinic's auto_mark_no_show_time has passed
"""
import asyncio
import logging
from collections import defaultdict
from typing import Literal

from sqlalchemy import update, select, and_, or_
from sqlalchemy.ext.asyncio import async_sessionmaker

from frontdesk.core.clinic_time import Clock, now_local, utcnow
from frontdesk.core.config import settings
from frontdesk.modules.appointments.models import Appointment, AppointmentStatus
from frontdesk.modules.appointments.repository import StatusHistoryRepository
from frontdesk.modules.events.outbox import OutboxService
from frontdesk.modules.settings.models import ClinicSettings

log = logging.getLogger("sweeper.no_show")

SweepMode = Literal["day_rollover", "cutoff"]


class NoShowSweeper:
    def __init__(self, session_factory: async_sessionmaker, clock: Clock = utcnow, mode: SweepMode | None = None):
        self.session_factory = session_factory
        self.clock = clock
        self.mode = mode or settings.NO_SHOW_MODE

    def _due(self, today, hhmm: str):
        predicate = Appointment.date < today
        if self.mode == "cutoff":
            # clinics without a settings row use the default cutoff of 00:00
            before_cutoff = select(ClinicSettings.clinic_id).where(ClinicSettings.auto_mark_no_show_time > hhmm)
            predicate = or_(predicate, and_(
                Appointment.date == today,
                Appointment.start_time < hhmm,
                Appointment.clinic_id.not_in(before_cutoff),
            ))
        return predicate

    async def sweep(self) -> int:
        """Mark overdue scheduled appointments as no-show; returns how many changed."""
        now = now_local(self.clock)
        today, hhmm = now.date(), now.strftime("%H:%M")
        opted_out = select(ClinicSettings.clinic_id).where(ClinicSettings.auto_mark_no_show.is_(False))

        async with self.session_factory() as session:
            try:
                stmt = (
                    update(Appointment)
                    .where(
                        Appointment.status == AppointmentStatus.SCHEDULED.value,
                        self._due(today, hhmm),
                        Appointment.clinic_id.not_in(opted_out),
                    )
                    .values(status=AppointmentStatus.NO_SHOW.value, updated_at=utcnow())
                    .returning(Appointment.id, Appointment.clinic_id)
                    .execution_options(synchronize_session=False)
                )
                rows = (await session.execute(stmt)).all()

                history = StatusHistoryRepository(session)
                changed_at = self.clock()
                by_clinic = defaultdict(list)
                for appt_id, clinic_id in rows:
                    await history.record(appt_id, AppointmentStatus.SCHEDULED.value, AppointmentStatus.NO_SHOW.value, None, changed_at)
                    by_clinic[clinic_id].append(str(appt_id))

                outbox = OutboxService(session)
                for clinic_id, ids in by_clinic.items():
                    await outbox.enqueue(clinic_id, "appointment.no_show_marked", "appointment", ids[0], {"appointment_ids": ids})
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        if rows:
            log.info(f"Marked {len(rows)} appointments as no-show ({self.mode}, today={today}, now={hhmm})")
        return len(rows)


class SweepScheduler:
    """
    Three triggers, one operation. Start-up and timer failures are only
    logged and retried on the next tick; a foreground resume is an explicit
    user action, so its failure propagates.
    """

    def __init__(self, sweeper: NoShowSweeper, interval_seconds: float | None = None):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds or settings.NO_SHOW_SWEEP_INTERVAL_SECONDS

    async def _quiet(self, trigger: str) -> int | None:
        try:
            return await self.sweeper.sweep()
        except Exception:
            log.error(f"No-show sweep failed (trigger={trigger})", exc_info=True)
            return None

    async def on_start(self) -> int | None:
        return await self._quiet("start")

    async def on_interval_tick(self) -> int | None:
        return await self._quiet("interval")

    async def on_foreground_resume(self) -> int:
        try:
            return await self.sweeper.sweep()
        except Exception:
            log.error("No-show sweep failed (trigger=foreground)", exc_info=True)
            raise

    async def run(self):
        await self.on_start()
        log.info(f"No-show sweeper started (every {self.interval_seconds}s, mode={self.sweeper.mode})")
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                await self.on_interval_tick()
        except asyncio.CancelledError:
            log.info("No-show sweeper cancelled; shutting down")
            raise
