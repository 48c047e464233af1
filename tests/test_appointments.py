"""
Tests for booking writes: guarded creation, concurrent slot loss, bulk
creation, moves and the staff status lifecycle.
"""

import uuid
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from frontdesk.core.errors import AdmissionRejected, InvalidStatusTransition, NotFound, SlotTakenConcurrently, ValidationFailed
from frontdesk.modules.appointments.admission import AdmissionDecision, AdmissionService
from frontdesk.modules.appointments.models import Appointment
from frontdesk.modules.appointments.schemas import AppointmentCreate, AppointmentUpdate
from frontdesk.modules.appointments.service import AppointmentService
from frontdesk.modules.events.outbox import EventOutbox

from conftest import MONDAY

FIXED_NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


def booking(clinic_id, practitioner_id, **kw):
    data = dict(clinic_id=clinic_id, practitioner_id=practitioner_id, date=MONDAY, start_time="09:00", sub_slot=1, treatment_type="fkt")
    data.update(kw)
    return AppointmentCreate(**data)


@pytest.fixture
def service_for(session_factory, admission):
    def _make(session):
        return AppointmentService(session, admission, clock=lambda: FIXED_NOW)
    return _make


class TestCreate:

    async def test_creates_and_records_history(self, session, service_for, clinic_id, practitioner_id):
        service = service_for(session)
        booked = await service.create(booking(clinic_id, practitioner_id, start_time="9:00", sub_slot=0), created_by=uuid.uuid4())

        obj = booked.appointment
        assert obj.status == "scheduled"
        assert obj.start_time == "09:00"
        assert obj.sub_slot == 1
        history = await service.status_history(obj.id)
        assert [(h.old_status, h.new_status) for h in history] == [(None, "scheduled")]

        events = (await session.execute(select(EventOutbox).where(EventOutbox.subject_id == str(obj.id)))).scalars().all()
        assert [e.event_type for e in events] == ["appointment.created"]

    async def test_rejection_raises_with_reason(self, session, service_for, add_appointment, clinic_id, practitioner_id):
        await add_appointment(treatment_type="masaje")
        with pytest.raises(AdmissionRejected) as ei:
            await service_for(session).create(booking(clinic_id, practitioner_id, sub_slot=2))
        assert ei.value.code == "admission_rejected"
        assert "exclusivo" in ei.value.reason

    async def test_cancelled_row_frees_the_slot(self, session, service_for, add_appointment, clinic_id, practitioner_id):
        await add_appointment(status="cancelled")
        booked = await service_for(session).create(booking(clinic_id, practitioner_id))
        assert booked.appointment.sub_slot == 1

    async def test_storage_rejects_duplicate_live_slot(self, session_factory, add_appointment, clinic_id, practitioner_id):
        await add_appointment()
        with pytest.raises(IntegrityError):
            async with session_factory() as s:
                s.add(Appointment(clinic_id=clinic_id, practitioner_id=practitioner_id, date=MONDAY,
                                  start_time="09:00", sub_slot=1, treatment_type="fkt", status="scheduled"))
                await s.commit()


class TestConcurrentBooking:
    """Two operators pass admission for the same slot; only one write lands."""

    async def test_loser_gets_fresh_reason(self, session_factory, admission, clinic_id, practitioner_id):
        real_decide = AdmissionService.decide
        calls = {"n": 0}

        async def stale_then_real(self, candidate, exclude_id=None):
            calls["n"] += 1
            if calls["n"] == 1:
                return AdmissionDecision(admitted=True)  # checked before the winner committed
            return await real_decide(self, candidate, exclude_id)

        async with session_factory() as s:
            await AppointmentService(s, admission).create(booking(clinic_id, practitioner_id))

        with patch.object(AdmissionService, "decide", stale_then_real):
            async with session_factory() as s:
                with pytest.raises(SlotTakenConcurrently) as ei:
                    await AppointmentService(s, admission).create(booking(clinic_id, practitioner_id))

        assert ei.value.code == "slot_taken_concurrently"
        assert "ya está ocupado" in ei.value.reason
        assert calls["n"] == 2

        async with session_factory() as s:
            rows = (await s.execute(select(Appointment))).scalars().all()
        assert len(rows) == 1


class TestBulk:

    async def test_earlier_items_constrain_later_ones(self, session, service_for, clinic_id, practitioner_id):
        results = await service_for(session).create_many([
            booking(clinic_id, practitioner_id, sub_slot=1),
            booking(clinic_id, practitioner_id, sub_slot=2),
            booking(clinic_id, practitioner_id, sub_slot=2),
            booking(clinic_id, practitioner_id, start_time="10:00", treatment_type="masaje"),
            booking(clinic_id, practitioner_id, start_time="10:00", sub_slot=2),
        ])
        assert [r.appointment is not None for r in results] == [True, True, False, True, False]
        assert results[2].code == "admission_rejected"
        assert "exclusivo" in results[4].reason


class TestUpdate:

    async def test_move_runs_admission_excluding_itself(self, session, service_for, add_appointment):
        own = await add_appointment(treatment_type="masaje")
        booked = await service_for(session).update(own.id, AppointmentUpdate(notes="traer estudios"))
        assert booked.appointment.notes == "traer estudios"

        booked = await service_for(session).update(own.id, AppointmentUpdate(start_time="10:00"))
        assert booked.appointment.start_time == "10:00"

    async def test_move_into_taken_sub_slot_rejected(self, session, service_for, add_appointment):
        await add_appointment(sub_slot=1)
        other = await add_appointment(sub_slot=2)
        with pytest.raises(AdmissionRejected):
            await service_for(session).update(other.id, AppointmentUpdate(sub_slot=1))

    async def test_terminal_appointment_cannot_move(self, session, service_for, add_appointment):
        done = await add_appointment(status="completed")
        with pytest.raises(ValidationFailed):
            await service_for(session).update(done.id, AppointmentUpdate(start_time="11:00"))

    async def test_missing_appointment(self, session, service_for):
        with pytest.raises(NotFound):
            await service_for(session).update(uuid.uuid4(), AppointmentUpdate(notes="x"))


class TestStatusLifecycle:

    @pytest.mark.parametrize("target", ["completed", "cancelled", "no_show"])
    async def test_scheduled_transitions(self, session, service_for, add_appointment, target):
        appt = await add_appointment()
        user = uuid.uuid4()
        service = service_for(session)
        obj = await service.change_status(appt.id, target, changed_by=user)
        assert obj.status == target
        history = await service.status_history(appt.id)
        assert (history[-1].old_status, history[-1].new_status, history[-1].changed_by) == ("scheduled", target, user)

    async def test_no_show_can_be_completed(self, session, service_for, add_appointment):
        appt = await add_appointment(status="no_show")
        assert (await service_for(session).change_status(appt.id, "completed")).status == "completed"

    @pytest.mark.parametrize("current, target", [
        ("completed", "scheduled"),
        ("cancelled", "scheduled"),
        ("cancelled", "completed"),
        ("no_show", "cancelled"),
        ("completed", "no_show"),
    ])
    async def test_invalid_transitions(self, session, service_for, add_appointment, current, target):
        appt = await add_appointment(status=current)
        with pytest.raises(InvalidStatusTransition):
            await service_for(session).change_status(appt.id, target)

    async def test_delete(self, session, service_for, add_appointment):
        appt = await add_appointment()
        service = service_for(session)
        await service.delete(appt.id)
        with pytest.raises(NotFound):
            await service.get(appt.id)
