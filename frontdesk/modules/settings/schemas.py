import uuid
from pydantic import BaseModel, ConfigDict, Field, field_validator
from frontdesk.core.slots import normalize_time

class ClinicSettingsUpdate(BaseModel):
    min_slot_minutes: int | None = Field(default=None, ge=5, le=240)
    workday_start: str | None = None
    workday_end: str | None = None
    auto_mark_no_show: bool | None = None
    auto_mark_no_show_time: str | None = None

    @field_validator("workday_start", "workday_end", "auto_mark_no_show_time")
    @classmethod
    def _hhmm(cls, v: str | None):
        return normalize_time(v) if v is not None else v

class ClinicSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    clinic_id: uuid.UUID
    min_slot_minutes: int
    workday_start: str
    workday_end: str
    auto_mark_no_show: bool
    auto_mark_no_show_time: str
