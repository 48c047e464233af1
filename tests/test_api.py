"""
HTTP-level tests: routing, error translation and request validation.
"""

import uuid
import pytest
import httpx
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from frontdesk.core.config import settings
from frontdesk.core.db import get_session
from frontdesk.core.security import get_principal
from frontdesk.main import app
from frontdesk.modules.appointments.sweeper import NoShowSweeper, SweepScheduler

from conftest import MONDAY

API = "/api/v1"


@pytest.fixture
async def client(session_factory, resolvers, admission):
    async def override_session():
        async with session_factory() as s:
            yield s

    app.state.session_factory = session_factory
    app.state.resolvers = resolvers
    app.state.admission = admission
    app.state.sweep_scheduler = SweepScheduler(NoShowSweeper(session_factory), interval_seconds=60)
    app.dependency_overrides[get_session] = override_session
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def body(clinic_id, practitioner_id, **kw):
    data = {
        "clinic_id": str(clinic_id),
        "practitioner_id": str(practitioner_id),
        "date": MONDAY.isoformat(),
        "start_time": "09:00",
        "sub_slot": 1,
        "treatment_type": "fkt",
    }
    data.update(kw)
    return data


class TestHealth:

    async def test_health(self, client):
        r = await client.get(f"{API}/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}


class TestAppointmentsApi:

    async def test_dry_run_then_book(self, client, clinic_id, practitioner_id):
        r = await client.post(f"{API}/appointments/admission", json=body(clinic_id, practitioner_id))
        assert r.status_code == 200
        assert r.json()["admitted"] is True

        r = await client.post(f"{API}/appointments", json=body(clinic_id, practitioner_id, start_time="9:0", sub_slot=0))
        assert r.status_code == 201
        appt = r.json()["appointment"]
        assert (appt["start_time"], appt["sub_slot"], appt["status"]) == ("09:00", 1, "scheduled")

        r = await client.get(f"{API}/appointments/{appt['id']}")
        assert r.status_code == 200

        r = await client.get(f"{API}/appointments", params={"clinic_id": str(clinic_id), "date_from": MONDAY.isoformat()})
        assert [a["id"] for a in r.json()] == [appt["id"]]

    async def test_rejection_is_409_with_reason(self, client, clinic_id, practitioner_id):
        await client.post(f"{API}/appointments", json=body(clinic_id, practitioner_id, treatment_type="drenaje"))
        r = await client.post(f"{API}/appointments", json=body(clinic_id, practitioner_id, sub_slot=2))
        assert r.status_code == 409
        assert r.json()["code"] == "admission_rejected"
        assert "exclusivo" in r.json()["reason"]

    async def test_unknown_treatment_is_422(self, client, clinic_id, practitioner_id):
        r = await client.post(f"{API}/appointments", json=body(clinic_id, practitioner_id, treatment_type="acupuntura"))
        assert r.status_code == 422

    async def test_status_change_and_invalid_transition(self, client, clinic_id, practitioner_id):
        r = await client.post(f"{API}/appointments", json=body(clinic_id, practitioner_id))
        appt_id = r.json()["appointment"]["id"]

        r = await client.post(f"{API}/appointments/{appt_id}/status", json={"status": "cancelled"})
        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"

        r = await client.post(f"{API}/appointments/{appt_id}/status", json={"status": "completed"})
        assert r.status_code == 400

        r = await client.get(f"{API}/appointments/{appt_id}/history")
        assert [h["new_status"] for h in r.json()] == ["scheduled", "cancelled"]

    async def test_missing_appointment_is_404(self, client):
        r = await client.get(f"{API}/appointments/{uuid.uuid4()}")
        assert r.status_code == 404

    async def test_bulk_reports_each_item(self, client, clinic_id, practitioner_id):
        r = await client.post(f"{API}/appointments/bulk", json={"items": [
            body(clinic_id, practitioner_id),
            body(clinic_id, practitioner_id),
        ]})
        assert r.status_code == 200
        assert [i["created"] for i in r.json()] == [True, False]

    async def test_manual_sweep(self, client, add_appointment):
        await add_appointment(date=MONDAY)
        r = await client.post(f"{API}/appointments/no-show-sweep")
        assert r.status_code == 200
        assert r.json() == {"marked": 1}


class TestCalendarApi:

    async def test_exception_blocks_and_reports(self, client, clinic_id):
        r = await client.post(f"{API}/exceptions", json={
            "clinic_id": str(clinic_id), "type": "clinic_closed", "date": MONDAY.isoformat(), "reason": "Obras",
        })
        assert r.status_code == 200
        assert len(r.json()) == 1

        r = await client.get(f"{API}/exceptions/blocked", params={"clinic_id": str(clinic_id), "date": MONDAY.isoformat()})
        assert r.json() == {"blocked": True, "reason": "Obras"}

    async def test_invalid_exception_is_422(self, client, clinic_id):
        r = await client.post(f"{API}/exceptions", json={
            "clinic_id": str(clinic_id), "type": "practitioner_block", "date": MONDAY.isoformat(),
        })
        assert r.status_code == 422

    async def test_holiday_import(self, client, clinic_id):
        r = await client.post(f"{API}/holidays/import", json={"clinic_id": str(clinic_id), "year": 2025})
        assert r.json() == {"imported": 16, "skipped": 0}
        r = await client.get(f"{API}/holidays", params={"clinic_id": str(clinic_id), "date_from": "2025-07-01", "date_to": "2025-07-31"})
        assert [h["name"] for h in r.json()] == ["Día de la Independencia"]

    async def test_availability_window_and_check(self, client, clinic_id, practitioner_id):
        r = await client.post(f"{API}/availability/windows", json={
            "clinic_id": str(clinic_id), "practitioner_id": str(practitioner_id), "weekday": 1, "from_time": "08:00", "to_time": "12:00",
        })
        assert r.status_code == 200

        r = await client.post(f"{API}/availability/windows", json={
            "clinic_id": str(clinic_id), "practitioner_id": str(practitioner_id), "weekday": 1, "from_time": "11:00", "to_time": "13:00",
        })
        assert r.status_code == 422

        r = await client.get(f"{API}/availability/check", params={
            "clinic_id": str(clinic_id), "practitioner_id": str(practitioner_id), "date": MONDAY.isoformat(), "start_time": "12:00",
        })
        data = r.json()
        assert data["available"] is False
        assert data["windows"] == [{"from": "08:00", "to": "12:00"}]

    async def test_settings_defaults_and_time_slots(self, client, clinic_id):
        r = await client.get(f"{API}/clinics/{clinic_id}/settings")
        assert r.json() == {
            "clinic_id": str(clinic_id),
            "min_slot_minutes": 30,
            "workday_start": "08:00",
            "workday_end": "19:00",
            "auto_mark_no_show": True,
            "auto_mark_no_show_time": "00:00",
        }

        r = await client.patch(f"{API}/clinics/{clinic_id}/settings", json={"workday_start": "09:00", "workday_end": "10:00", "min_slot_minutes": 30})
        assert r.status_code == 200

        r = await client.get(f"{API}/clinics/{clinic_id}/time-slots")
        assert r.json() == ["09:00", "09:30", "10:00"]

        r = await client.patch(f"{API}/clinics/{clinic_id}/settings", json={"workday_start": "18:00", "workday_end": "08:00"})
        assert r.status_code == 422


class TestAuth:

    def token(self, **claims) -> str:
        return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

    async def test_token_yields_user_and_roles(self):
        user_id = uuid.uuid4()
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials=self.token(sub=str(user_id), roles=["receptionist"]))
        principal = await get_principal(creds)
        assert principal.model_dump() == {"user_id": user_id, "roles": ["receptionist"]}

    async def test_settings_update_needs_admin(self, client, clinic_id):
        headers = {"Authorization": f"Bearer {self.token(sub=str(uuid.uuid4()), roles=['receptionist'])}"}
        r = await client.patch(f"{API}/clinics/{clinic_id}/settings", json={"min_slot_minutes": 15}, headers=headers)
        assert r.status_code == 403
