import uuid
import logging
from datetime import date
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.core.db import get_session
from frontdesk.core.security import get_principal, Principal, require_roles
from frontdesk.modules.appointments.admission import AdmissionService, get_admission
from frontdesk.modules.appointments.models import AppointmentStatus
from frontdesk.modules.appointments.schemas import (
    AdmissionRequest, AdmissionOut, AppointmentCreate, AppointmentUpdate, AppointmentStatusChange,
    AppointmentOut, BookingOut, BulkCreate, BulkItemOut, StatusHistoryOut, SweepOut,
)
from frontdesk.modules.appointments.service import AppointmentService
from frontdesk.modules.appointments.sweeper import SweepScheduler

router = APIRouter()
logger = logging.getLogger(__name__)

STAFF = ("admin", "receptionist", "practitioner")

def svc(session: AsyncSession = Depends(get_session), admission: AdmissionService = Depends(get_admission)) -> AppointmentService:
    return AppointmentService(session, admission)

def get_sweep_scheduler(request: Request) -> SweepScheduler:
    return request.app.state.sweep_scheduler

# ---- Admission ----

@router.post("/appointments/admission", response_model=AdmissionOut, dependencies=[Depends(get_principal)])
async def check_admission(payload: AdmissionRequest, service: AppointmentService = Depends(svc)):
    """Dry run: would this appointment be accepted right now?"""
    decision = await service.check(payload)
    return AdmissionOut(admitted=decision.admitted, reason=decision.reason, warnings=decision.warnings)

# ---- Appointments ----

@router.post("/appointments", response_model=BookingOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_roles(*STAFF))])
async def create_appointment(payload: AppointmentCreate, principal: Principal = Depends(get_principal), service: AppointmentService = Depends(svc)):
    booked = await service.create(payload, created_by=principal.user_id)
    return BookingOut(appointment=AppointmentOut.model_validate(booked.appointment), warnings=booked.warnings)

@router.post("/appointments/bulk", response_model=list[BulkItemOut], dependencies=[Depends(require_roles(*STAFF))])
async def create_appointments_bulk(payload: BulkCreate, principal: Principal = Depends(get_principal), service: AppointmentService = Depends(svc)):
    results = await service.create_many(payload.items, created_by=principal.user_id)
    return [
        BulkItemOut(
            index=r.index,
            created=r.appointment is not None,
            appointment=AppointmentOut.model_validate(r.appointment) if r.appointment is not None else None,
            code=r.code,
            reason=r.reason,
            warnings=r.warnings,
        )
        for r in results
    ]

@router.post("/appointments/no-show-sweep", response_model=SweepOut, dependencies=[Depends(require_roles(*STAFF))])
async def no_show_sweep(scheduler: SweepScheduler = Depends(get_sweep_scheduler)):
    return SweepOut(marked=await scheduler.on_foreground_resume())

@router.get("/appointments", response_model=list[AppointmentOut], dependencies=[Depends(get_principal)])
async def list_appointments(
    clinic_id: uuid.UUID,
    date_from: date | None = None,
    date_to: date | None = None,
    practitioner_id: uuid.UUID | None = None,
    status: AppointmentStatus | None = None,
    limit: int = 200,
    offset: int = 0,
    service: AppointmentService = Depends(svc),
):
    return await service.list(
        clinic_id,
        date_from=date_from,
        date_to=date_to,
        practitioner_id=practitioner_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )

@router.get("/appointments/{appt_id}", response_model=AppointmentOut, dependencies=[Depends(get_principal)])
async def get_appointment(appt_id: uuid.UUID, service: AppointmentService = Depends(svc)):
    return await service.get(appt_id)

@router.get("/appointments/{appt_id}/history", response_model=list[StatusHistoryOut], dependencies=[Depends(get_principal)])
async def appointment_history(appt_id: uuid.UUID, service: AppointmentService = Depends(svc)):
    return await service.status_history(appt_id)

@router.patch("/appointments/{appt_id}", response_model=BookingOut, dependencies=[Depends(require_roles(*STAFF))])
async def update_appointment(appt_id: uuid.UUID, payload: AppointmentUpdate, service: AppointmentService = Depends(svc)):
    booked = await service.update(appt_id, payload)
    return BookingOut(appointment=AppointmentOut.model_validate(booked.appointment), warnings=booked.warnings)

@router.post("/appointments/{appt_id}/status", response_model=AppointmentOut, dependencies=[Depends(require_roles(*STAFF))])
async def change_status(appt_id: uuid.UUID, payload: AppointmentStatusChange, principal: Principal = Depends(get_principal), service: AppointmentService = Depends(svc)):
    return await service.change_status(appt_id, payload.status, changed_by=principal.user_id)

@router.delete("/appointments/{appt_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_roles("admin", "receptionist"))])
async def delete_appointment(appt_id: uuid.UUID, service: AppointmentService = Depends(svc)):
    await service.delete(appt_id)
