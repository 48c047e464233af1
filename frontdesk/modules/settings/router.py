import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.db import get_session
from frontdesk.core.security import get_principal, require_roles
from frontdesk.modules.settings.schemas import ClinicSettingsOut, ClinicSettingsUpdate
from frontdesk.modules.settings.service import ClinicSettingsService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ClinicSettingsService:
    return ClinicSettingsService(session)

@router.get("/clinics/{clinic_id}/settings", response_model=ClinicSettingsOut, dependencies=[Depends(get_principal)])
async def get_settings(clinic_id: uuid.UUID, service: ClinicSettingsService = Depends(svc)):
    return await service.get_or_create(clinic_id)

@router.patch("/clinics/{clinic_id}/settings", response_model=ClinicSettingsOut, dependencies=[Depends(require_roles("admin"))])
async def update_settings(clinic_id: uuid.UUID, payload: ClinicSettingsUpdate, service: ClinicSettingsService = Depends(svc)):
    return await service.update(clinic_id, payload)

@router.get("/clinics/{clinic_id}/time-slots", response_model=list[str], dependencies=[Depends(get_principal)])
async def time_slots(clinic_id: uuid.UUID, service: ClinicSettingsService = Depends(svc)):
    return await service.time_slots(clinic_id)
