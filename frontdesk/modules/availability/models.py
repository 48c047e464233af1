import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, SmallInteger, Index, CheckConstraint
from frontdesk.core.base import Base, TimestampedMixin

# Recurring weekly window: weekday 0=Sunday..6=Saturday, times "HH:mm" clinic-local, [from, to)
class PractitionerAvailability(Base, TimestampedMixin):
    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_practitioner_availability_weekday"),
        Index("ix_practitioner_availability_lookup", "clinic_id", "practitioner_id", "weekday"),
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column()
    practitioner_id: Mapped[uuid.UUID] = mapped_column()
    weekday: Mapped[int] = mapped_column(SmallInteger)
    from_time: Mapped[str] = mapped_column(String(5))
    to_time: Mapped[str] = mapped_column(String(5))
    slot_minutes: Mapped[int] = mapped_column(Integer, default=30)
