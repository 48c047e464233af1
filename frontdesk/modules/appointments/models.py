import enum
import uuid
import datetime as dt
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Date, Text, SmallInteger, TIMESTAMP, ForeignKey, Index, text
from frontdesk.core.base import Base, TimestampedMixin

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

class Appointment(Base, TimestampedMixin):
    __table_args__ = (
        # at most one live appointment per bookable position; cancelled rows free it
        Index(
            "uq_appointment_slot_active",
            "clinic_id", "practitioner_id", "date", "start_time", "sub_slot",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_appointment_status_date", "status", "date"),
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column()
    practitioner_id: Mapped[uuid.UUID] = mapped_column()
    patient_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    # Slot key
    date: Mapped[dt.date] = mapped_column(Date)
    start_time: Mapped[str] = mapped_column(String(5))  # HH:mm, clinic-local
    sub_slot: Mapped[int] = mapped_column(SmallInteger, default=1)  # 1..5

    treatment_type: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16), default=AppointmentStatus.SCHEDULED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

class AppointmentStatusHistory(Base, TimestampedMixin):
    appointment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("appointment.id", ondelete="CASCADE"), index=True)
    old_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    new_status: Mapped[str] = mapped_column(String(16))
    changed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)  # None for the sweeper
    changed_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP(timezone=True))
