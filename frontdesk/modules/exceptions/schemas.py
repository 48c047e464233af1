import uuid
import datetime as dt
from pydantic import BaseModel, ConfigDict, Field, field_validator
from frontdesk.core.slots import normalize_time
from frontdesk.modules.exceptions.models import ExceptionType

def _opt_hhmm(v):
    return normalize_time(v) if v not in (None, "") else None

class ExceptionCreate(BaseModel):
    clinic_id: uuid.UUID
    type: ExceptionType
    date: dt.date
    date_to: dt.date | None = None  # inclusive; one row is stored per day
    practitioner_id: uuid.UUID | None = None
    from_time: str | None = None
    to_time: str | None = None
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("from_time", "to_time", mode="before")
    @classmethod
    def _hhmm(cls, v):
        return _opt_hhmm(v)

class ExceptionUpdate(BaseModel):
    type: ExceptionType | None = None
    practitioner_id: uuid.UUID | None = None
    from_time: str | None = None
    to_time: str | None = None
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("from_time", "to_time", mode="before")
    @classmethod
    def _hhmm(cls, v):
        return _opt_hhmm(v)

class ExceptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinic_id: uuid.UUID
    type: ExceptionType
    date: dt.date
    practitioner_id: uuid.UUID | None = None
    from_time: str | None = None
    to_time: str | None = None
    reason: str | None = None

class BlockedOut(BaseModel):
    blocked: bool
    reason: str | None = None

class AffectedCountOut(BaseModel):
    count: int

class HolidayCreate(BaseModel):
    clinic_id: uuid.UUID | None = None
    date: dt.date
    name: str = Field(min_length=1, max_length=160)
    country_code: str | None = Field(default=None, min_length=2, max_length=2)

class HolidayUpdate(BaseModel):
    date: dt.date | None = None
    name: str | None = Field(default=None, min_length=1, max_length=160)

class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinic_id: uuid.UUID | None = None
    date: dt.date
    name: str
    country_code: str | None = None

class HolidayImport(BaseModel):
    clinic_id: uuid.UUID | None = None
    year: int | None = None

class HolidayImportOut(BaseModel):
    imported: int
    skipped: int
