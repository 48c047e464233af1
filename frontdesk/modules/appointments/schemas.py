import uuid
import datetime as dt
from pydantic import BaseModel, ConfigDict, Field, field_validator
from frontdesk.core.slots import normalize_sub_slot, normalize_time
from frontdesk.modules.appointments.models import AppointmentStatus
from frontdesk.modules.appointments.treatments import TreatmentType

# ---- Appointments ----

class SlotFields(BaseModel):
    clinic_id: uuid.UUID
    practitioner_id: uuid.UUID
    date: dt.date
    start_time: str
    sub_slot: int = 1
    treatment_type: TreatmentType

    @field_validator("start_time", mode="before")
    @classmethod
    def _hhmm(cls, v):
        return normalize_time(v)

    @field_validator("sub_slot", mode="before")
    @classmethod
    def _sub_slot(cls, v):
        # legacy 0-based values and garbage both land in 1..5
        return normalize_sub_slot(v)

class AdmissionRequest(SlotFields):
    exclude_id: uuid.UUID | None = None  # the appointment being moved, if any

class AdmissionOut(BaseModel):
    admitted: bool
    reason: str | None = None
    warnings: list[str] = []

class AppointmentCreate(SlotFields):
    patient_id: uuid.UUID | None = None
    notes: str | None = Field(default=None, max_length=2000)

class AppointmentUpdate(BaseModel):
    # allow updating a subset of fields
    practitioner_id: uuid.UUID | None = None
    date: dt.date | None = None
    start_time: str | None = None
    sub_slot: int | None = None
    treatment_type: TreatmentType | None = None
    patient_id: uuid.UUID | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("start_time", mode="before")
    @classmethod
    def _hhmm(cls, v):
        return normalize_time(v) if v is not None else None

    @field_validator("sub_slot", mode="before")
    @classmethod
    def _sub_slot(cls, v):
        return normalize_sub_slot(v) if v is not None else None

class AppointmentStatusChange(BaseModel):
    status: AppointmentStatus

class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinic_id: uuid.UUID
    practitioner_id: uuid.UUID
    patient_id: uuid.UUID | None = None
    date: dt.date
    start_time: str
    sub_slot: int
    treatment_type: str
    status: str
    notes: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

class BookingOut(BaseModel):
    appointment: AppointmentOut
    warnings: list[str] = []

class BulkCreate(BaseModel):
    items: list[AppointmentCreate] = Field(min_length=1, max_length=100)

class BulkItemOut(BaseModel):
    index: int
    created: bool
    appointment: AppointmentOut | None = None
    code: str | None = None
    reason: str | None = None
    warnings: list[str] = []

class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    old_status: str | None = None
    new_status: str
    changed_by: uuid.UUID | None = None
    changed_at: dt.datetime

class SweepOut(BaseModel):
    marked: int
