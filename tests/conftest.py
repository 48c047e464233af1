import os

# must be set before frontdesk.core.config is imported
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///./frontdesk-test.db")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("EVENT_BUS_PROVIDER", "local")

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from frontdesk.core.base import Base
from frontdesk.core.db import import_models
from frontdesk.modules.appointments.admission import AdmissionService
from frontdesk.modules.appointments.models import Appointment
from frontdesk.modules.availability.models import PractitionerAvailability
from frontdesk.modules.exceptions.models import ScheduleException, Holiday
from frontdesk.modules.exceptions.resolver import ExceptionResolvers

MONDAY = date(2025, 9, 1)


@pytest.fixture
async def engine(tmp_path):
    # a file keeps every session on the same database; each test gets its own
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'frontdesk.db'}")
    import_models()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def resolvers(session_factory):
    return ExceptionResolvers(session_factory)


@pytest.fixture
def admission(session_factory, resolvers):
    return AdmissionService(session_factory, resolvers, timeout_seconds=2)


@pytest.fixture
def clinic_id():
    return uuid.uuid4()


@pytest.fixture
def practitioner_id():
    return uuid.uuid4()


@pytest.fixture
def add_appointment(session_factory, clinic_id, practitioner_id):
    async def _add(**kw) -> Appointment:
        data = {
            "clinic_id": clinic_id,
            "practitioner_id": practitioner_id,
            "date": MONDAY,
            "start_time": "09:00",
            "sub_slot": 1,
            "treatment_type": "fkt",
            "status": "scheduled",
        }
        data.update(kw)
        async with session_factory() as s:
            obj = Appointment(**data)
            s.add(obj)
            await s.commit()
            return obj
    return _add


@pytest.fixture
def add_window(session_factory, clinic_id, practitioner_id):
    async def _add(weekday: int, from_time: str, to_time: str, **kw) -> PractitionerAvailability:
        async with session_factory() as s:
            obj = PractitionerAvailability(
                clinic_id=kw.get("clinic_id", clinic_id),
                practitioner_id=kw.get("practitioner_id", practitioner_id),
                weekday=weekday,
                from_time=from_time,
                to_time=to_time,
                slot_minutes=kw.get("slot_minutes", 30),
            )
            s.add(obj)
            await s.commit()
            return obj
    return _add


@pytest.fixture
def add_exception(session_factory, clinic_id):
    async def _add(**kw) -> ScheduleException:
        data = {"clinic_id": clinic_id, "date": MONDAY, "type": "clinic_closed"}
        data.update(kw)
        async with session_factory() as s:
            obj = ScheduleException(**data)
            s.add(obj)
            await s.commit()
            return obj
    return _add


@pytest.fixture
def add_holiday(session_factory, clinic_id):
    async def _add(**kw) -> Holiday:
        data = {"clinic_id": clinic_id, "date": MONDAY, "name": "Feriado"}
        data.update(kw)
        async with session_factory() as s:
            obj = Holiday(**data)
            s.add(obj)
            await s.commit()
            return obj
    return _add
