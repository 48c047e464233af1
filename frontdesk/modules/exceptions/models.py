import enum
import uuid
import datetime as dt
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Date, Text, Index
from frontdesk.core.base import Base, TimestampedMixin

class ExceptionType(str, enum.Enum):
    CLINIC_CLOSED = "clinic_closed"
    PRACTITIONER_BLOCK = "practitioner_block"
    EXTENDED_HOURS = "extended_hours"

# One row per calendar day; multi-day ranges are expanded when created.
class ScheduleException(Base, TimestampedMixin):
    __table_args__ = (Index("ix_schedule_exception_clinic_date", "clinic_id", "date"),)

    clinic_id: Mapped[uuid.UUID] = mapped_column()
    practitioner_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    date: Mapped[dt.date] = mapped_column(Date)
    type: Mapped[str] = mapped_column(String(32))
    from_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    to_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

# clinic_id NULL applies to every clinic of the locale
class Holiday(Base, TimestampedMixin):
    __table_args__ = (Index("ix_holiday_date", "date"),)

    clinic_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    date: Mapped[dt.date] = mapped_column(Date)
    name: Mapped[str] = mapped_column(String(160))
    country_code: Mapped[str | None] = mapped_column(String(2), nullable=True)
