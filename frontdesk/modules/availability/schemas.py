import uuid
from pydantic import BaseModel, ConfigDict, Field, field_validator
from frontdesk.core.slots import normalize_time

class WindowCreate(BaseModel):
    clinic_id: uuid.UUID
    practitioner_id: uuid.UUID
    weekday: int = Field(ge=0, le=6)  # 0=Sunday
    from_time: str
    to_time: str
    slot_minutes: int = Field(default=30, ge=5, le=240)

    @field_validator("from_time", "to_time")
    @classmethod
    def _hhmm(cls, v: str):
        return normalize_time(v)

class WindowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinic_id: uuid.UUID
    practitioner_id: uuid.UUID
    weekday: int
    from_time: str
    to_time: str
    slot_minutes: int

class CopySchedule(BaseModel):
    clinic_id: uuid.UUID
    from_practitioner_id: uuid.UUID
    to_practitioner_id: uuid.UUID

class TimeRange(BaseModel):
    from_time: str = Field(serialization_alias="from")
    to_time: str = Field(serialization_alias="to")

class AvailabilityOut(BaseModel):
    available: bool
    configured: bool
    windows: list[TimeRange]
    message: str | None = None
