import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean
from frontdesk.core.base import Base, TimestampedMixin

class ClinicSettings(Base, TimestampedMixin):
    clinic_id: Mapped[uuid.UUID] = mapped_column(unique=True, index=True)
    min_slot_minutes: Mapped[int] = mapped_column(Integer, default=30)
    # "HH:mm", clinic-local; only used to draw slot grids
    workday_start: Mapped[str] = mapped_column(String(5), default="08:00")
    workday_end: Mapped[str] = mapped_column(String(5), default="19:00")
    auto_mark_no_show: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_mark_no_show_time: Mapped[str] = mapped_column(String(5), default="00:00")
