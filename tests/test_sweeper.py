"""
Tests for automatic no-show marking in both modes and for its triggers.
"""

import uuid
import logging
import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

from sqlalchemy import select

from frontdesk.modules.appointments.models import Appointment, AppointmentStatusHistory
from frontdesk.modules.appointments.sweeper import NoShowSweeper, SweepScheduler
from frontdesk.modules.settings.repository import ClinicSettingsRepository

from conftest import MONDAY

TUESDAY = date(2025, 9, 2)
# 10:00 in Buenos Aires (UTC-3)
NOW = datetime(2025, 9, 2, 13, 0, tzinfo=timezone.utc)


def clock():
    return NOW


async def statuses(session_factory) -> dict:
    async with session_factory() as s:
        rows = (await s.execute(select(Appointment))).scalars().all()
    return {(r.clinic_id, r.date, r.start_time): r.status for r in rows}


async def configure(session_factory, clinic_id, **kw):
    async with session_factory() as s:
        await ClinicSettingsRepository(s).create(clinic_id, **kw)
        await s.commit()


class TestDayRollover:
    """Default mode: only appointments dated before today are marked."""

    async def test_marks_only_past_scheduled(self, session_factory, add_appointment, clinic_id):
        await add_appointment(date=MONDAY, start_time="09:00")
        await add_appointment(date=MONDAY, start_time="10:00", status="completed")
        await add_appointment(date=MONDAY, start_time="11:00", status="cancelled")
        await add_appointment(date=TUESDAY, start_time="08:00")

        marked = await NoShowSweeper(session_factory, clock, mode="day_rollover").sweep()

        assert marked == 1
        st = await statuses(session_factory)
        assert st[(clinic_id, MONDAY, "09:00")] == "no_show"
        assert st[(clinic_id, MONDAY, "10:00")] == "completed"
        assert st[(clinic_id, MONDAY, "11:00")] == "cancelled"
        # earlier today, but intraday times are not considered in this mode
        assert st[(clinic_id, TUESDAY, "08:00")] == "scheduled"

    async def test_second_run_marks_nothing(self, session_factory, add_appointment):
        await add_appointment(date=MONDAY, start_time="09:00")
        await add_appointment(date=MONDAY, start_time="09:30")
        sweeper = NoShowSweeper(session_factory, clock, mode="day_rollover")
        assert await sweeper.sweep() == 2
        assert await sweeper.sweep() == 0

    async def test_writes_history_without_user(self, session_factory, add_appointment):
        appt = await add_appointment(date=MONDAY)
        await NoShowSweeper(session_factory, clock, mode="day_rollover").sweep()
        async with session_factory() as s:
            rows = (await s.execute(select(AppointmentStatusHistory).where(AppointmentStatusHistory.appointment_id == appt.id))).scalars().all()
        assert [(h.old_status, h.new_status, h.changed_by) for h in rows] == [("scheduled", "no_show", None)]

    async def test_opted_out_clinic_is_skipped(self, session_factory, add_appointment, clinic_id):
        await configure(session_factory, clinic_id, auto_mark_no_show=False)
        other = uuid.uuid4()
        await add_appointment(date=MONDAY)
        await add_appointment(date=MONDAY, clinic_id=other)

        assert await NoShowSweeper(session_factory, clock, mode="day_rollover").sweep() == 1
        st = await statuses(session_factory)
        assert st[(clinic_id, MONDAY, "09:00")] == "scheduled"
        assert st[(other, MONDAY, "09:00")] == "no_show"


class TestCutoffMode:
    """Cutoff mode also marks today's already-started rows once the clinic cutoff has passed."""

    async def test_marks_started_appointments_after_cutoff(self, session_factory, add_appointment, clinic_id):
        await configure(session_factory, clinic_id, auto_mark_no_show_time="08:00")
        await add_appointment(date=TUESDAY, start_time="09:00")
        await add_appointment(date=TUESDAY, start_time="11:00")
        await add_appointment(date=MONDAY, start_time="18:00")

        assert await NoShowSweeper(session_factory, clock, mode="cutoff").sweep() == 2
        st = await statuses(session_factory)
        assert st[(clinic_id, TUESDAY, "09:00")] == "no_show"
        assert st[(clinic_id, TUESDAY, "11:00")] == "scheduled"
        assert st[(clinic_id, MONDAY, "18:00")] == "no_show"

    async def test_waits_for_clinic_cutoff(self, session_factory, add_appointment, clinic_id):
        await configure(session_factory, clinic_id, auto_mark_no_show_time="12:00")
        await add_appointment(date=TUESDAY, start_time="09:00")
        await add_appointment(date=MONDAY, start_time="09:00")

        assert await NoShowSweeper(session_factory, clock, mode="cutoff").sweep() == 1
        st = await statuses(session_factory)
        assert st[(clinic_id, TUESDAY, "09:00")] == "scheduled"
        assert st[(clinic_id, MONDAY, "09:00")] == "no_show"

    async def test_clinic_without_settings_uses_midnight_cutoff(self, session_factory, add_appointment, clinic_id):
        await add_appointment(date=TUESDAY, start_time="09:59")
        assert await NoShowSweeper(session_factory, clock, mode="cutoff").sweep() == 1


class TestScheduler:

    async def test_start_and_tick_failures_are_logged(self, caplog):
        sweeper = AsyncMock()
        sweeper.sweep.side_effect = OSError("db down")
        scheduler = SweepScheduler(sweeper, interval_seconds=60)
        with caplog.at_level(logging.ERROR, logger="sweeper.no_show"):
            assert await scheduler.on_start() is None
            assert await scheduler.on_interval_tick() is None
        assert len([r for r in caplog.records if r.name == "sweeper.no_show"]) == 2

    async def test_foreground_resume_reports_failures(self):
        sweeper = AsyncMock()
        sweeper.sweep.side_effect = OSError("db down")
        with pytest.raises(OSError):
            await SweepScheduler(sweeper, interval_seconds=60).on_foreground_resume()

    async def test_all_triggers_share_the_sweep(self):
        sweeper = AsyncMock()
        sweeper.sweep.return_value = 3
        scheduler = SweepScheduler(sweeper, interval_seconds=60)
        assert await scheduler.on_start() == 3
        assert await scheduler.on_interval_tick() == 3
        assert await scheduler.on_foreground_resume() == 3
        assert sweeper.sweep.await_count == 3
