from datetime import date
import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.db import get_session
from frontdesk.core.security import Principal, get_principal, require_roles
from frontdesk.modules.exceptions.models import ExceptionType
from frontdesk.modules.exceptions.resolver import ExceptionResolvers, get_resolvers
from frontdesk.modules.exceptions.service import ScheduleExceptionService
from frontdesk.modules.exceptions.schemas import (
    ExceptionCreate, ExceptionUpdate, ExceptionOut, BlockedOut, AffectedCountOut,
    HolidayCreate, HolidayUpdate, HolidayOut, HolidayImport, HolidayImportOut,
)

router = APIRouter()

def svc(s: AsyncSession = Depends(get_session)) -> ScheduleExceptionService:
    return ScheduleExceptionService(s)

# Exceptions
@router.post("/exceptions", response_model=list[ExceptionOut], dependencies=[Depends(require_roles("admin", "receptionist", "practitioner"))])
async def create_exception(payload: ExceptionCreate, principal: Principal = Depends(get_principal), service: ScheduleExceptionService = Depends(svc)):
    return await service.create_exception(payload, created_by=principal.user_id)

@router.get("/exceptions", response_model=list[ExceptionOut], dependencies=[Depends(get_principal)])
async def list_exceptions(clinic_id: uuid.UUID, date_from: date, date_to: date, service: ScheduleExceptionService = Depends(svc)):
    return await service.list_exceptions(clinic_id, date_from, date_to)

@router.get("/exceptions/blocked", response_model=BlockedOut, dependencies=[Depends(get_principal)])
async def is_blocked(
    clinic_id: uuid.UUID,
    on: date = Query(alias="date"),
    time: str | None = None,
    practitioner_id: uuid.UUID | None = None,
    resolvers: ExceptionResolvers = Depends(get_resolvers),
):
    res = await resolvers.is_blocked(clinic_id, on, time, practitioner_id)
    return BlockedOut(blocked=res.blocked, reason=res.reason)

@router.get("/exceptions/affected-count", response_model=AffectedCountOut, dependencies=[Depends(get_principal)])
async def affected_count(
    clinic_id: uuid.UUID,
    type: ExceptionType,
    on: date = Query(alias="date"),
    practitioner_id: uuid.UUID | None = None,
    service: ScheduleExceptionService = Depends(svc),
):
    return AffectedCountOut(count=await service.count_affected(clinic_id, on, type, practitioner_id))

@router.patch("/exceptions/{exception_id}", response_model=ExceptionOut, dependencies=[Depends(require_roles("admin", "receptionist", "practitioner"))])
async def update_exception(exception_id: uuid.UUID, payload: ExceptionUpdate, service: ScheduleExceptionService = Depends(svc)):
    return await service.update_exception(exception_id, payload)

@router.delete("/exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_roles("admin", "receptionist", "practitioner"))])
async def delete_exception(exception_id: uuid.UUID, service: ScheduleExceptionService = Depends(svc)):
    await service.delete_exception(exception_id)

# Holidays
@router.post("/holidays", response_model=HolidayOut, dependencies=[Depends(require_roles("admin"))])
async def create_holiday(payload: HolidayCreate, service: ScheduleExceptionService = Depends(svc)):
    return await service.create_holiday(payload)

@router.get("/holidays", response_model=list[HolidayOut], dependencies=[Depends(get_principal)])
async def list_holidays(clinic_id: uuid.UUID | None = None, date_from: date | None = None, date_to: date | None = None, service: ScheduleExceptionService = Depends(svc)):
    return await service.list_holidays(clinic_id, date_from, date_to)

@router.post("/holidays/import", response_model=HolidayImportOut, dependencies=[Depends(require_roles("admin"))])
async def import_holidays(payload: HolidayImport, service: ScheduleExceptionService = Depends(svc)):
    imported, skipped = await service.import_holidays(payload.clinic_id, payload.year)
    return HolidayImportOut(imported=imported, skipped=skipped)

@router.patch("/holidays/{holiday_id}", response_model=HolidayOut, dependencies=[Depends(require_roles("admin"))])
async def update_holiday(holiday_id: uuid.UUID, payload: HolidayUpdate, service: ScheduleExceptionService = Depends(svc)):
    return await service.update_holiday(holiday_id, payload)

@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_roles("admin"))])
async def delete_holiday(holiday_id: uuid.UUID, service: ScheduleExceptionService = Depends(svc)):
    await service.delete_holiday(holiday_id)
