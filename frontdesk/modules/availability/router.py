from datetime import date
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.db import get_session
from frontdesk.core.security import get_principal, require_roles
from frontdesk.modules.availability.service import AvailabilityService
from frontdesk.modules.availability.schemas import WindowCreate, WindowOut, CopySchedule, AvailabilityOut, TimeRange

router = APIRouter()

def svc(s: AsyncSession = Depends(get_session)) -> AvailabilityService:
    return AvailabilityService(s)

# Weekly windows
@router.post("/availability/windows", response_model=WindowOut, dependencies=[Depends(require_roles("admin", "practitioner"))])
async def create_window(payload: WindowCreate, service: AvailabilityService = Depends(svc)):
    return await service.create_window(payload)

@router.get("/availability/windows", response_model=list[WindowOut], dependencies=[Depends(get_principal)])
async def list_windows(clinic_id: uuid.UUID, practitioner_id: uuid.UUID, service: AvailabilityService = Depends(svc)):
    return await service.list_windows(clinic_id, practitioner_id)

@router.delete("/availability/windows/{window_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_roles("admin", "practitioner"))])
async def delete_window(window_id: uuid.UUID, service: AvailabilityService = Depends(svc)):
    await service.delete_window(window_id)

@router.post("/availability/copy", response_model=list[WindowOut], dependencies=[Depends(require_roles("admin"))])
async def copy_schedule(payload: CopySchedule, service: AvailabilityService = Depends(svc)):
    return await service.copy_schedule(payload.clinic_id, payload.from_practitioner_id, payload.to_practitioner_id)

# Single check
@router.get("/availability/check", response_model=AvailabilityOut, response_model_by_alias=True, dependencies=[Depends(get_principal)])
async def check_availability(clinic_id: uuid.UUID, practitioner_id: uuid.UUID, date: date, start_time: str, service: AvailabilityService = Depends(svc)):
    res = await service.is_available(practitioner_id, clinic_id, date, start_time)
    return AvailabilityOut(
        available=res.available,
        configured=res.configured,
        windows=[TimeRange(from_time=w.start, to_time=w.end) for w in res.windows],
        message=res.message,
    )
