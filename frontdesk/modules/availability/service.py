import uuid
import logging
from dataclasses import dataclass, field
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.clinic_time import WEEKDAY_NAMES_ES, weekday_of
from frontdesk.core.errors import NotFound, ValidationFailed
from frontdesk.core.slots import normalize_time, to_minutes
from frontdesk.modules.availability.models import PractitionerAvailability
from frontdesk.modules.availability.repository import AvailabilityRepository
from frontdesk.modules.availability.schemas import WindowCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Window:
    start: str  # "HH:mm"
    end: str

    def admits(self, hhmm: str) -> bool:
        # half-open: a window ending at 12:00 does not admit a 12:00 start
        return self.start <= hhmm < self.end

    def __str__(self) -> str:
        return f"{self.start}–{self.end}"


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    configured: bool
    windows: list[Window] = field(default_factory=list)
    message: str | None = None


def _overlaps(a_from: str, a_to: str, b_from: str, b_to: str) -> bool:
    return to_minutes(a_from) < to_minutes(b_to) and to_minutes(b_from) < to_minutes(a_to)


class AvailabilityService:
    def __init__(self, s: AsyncSession):
        self.s = s
        self.repo = AvailabilityRepository(s)

    async def is_available(self, practitioner_id: uuid.UUID, clinic_id: uuid.UUID, on: date, start_time: str) -> AvailabilityResult:
        """
        Is the practitioner working at this clinic on `on` at `start_time`?

        No window on any weekday means the schedule was never configured and
        the answer is yes (configured=False). Windows on other weekdays but none
        on this one means the practitioner does not work that day.
        """
        weekday = weekday_of(on)
        rows = await self.repo.list_windows(clinic_id, practitioner_id, weekday=weekday)

        if not rows:
            if not await self.repo.has_any_window(clinic_id, practitioner_id):
                return AvailabilityResult(available=True, configured=False)
            return AvailabilityResult(
                available=False,
                configured=True,
                message=f"El profesional no tiene disponibilidad configurada para los {WEEKDAY_NAMES_ES[weekday]}",
            )

        windows = [Window(normalize_time(r.from_time), normalize_time(r.to_time)) for r in rows]
        hhmm = normalize_time(start_time)
        if any(w.admits(hhmm) for w in windows):
            return AvailabilityResult(available=True, configured=True, windows=windows)

        return AvailabilityResult(
            available=False,
            configured=True,
            windows=windows,
            message=f"Fuera del horario del profesional. Disponible: {', '.join(str(w) for w in windows)}",
        )

    # ---- Schedule entry ----
    async def create_window(self, payload: WindowCreate) -> PractitionerAvailability:
        if to_minutes(payload.from_time) >= to_minutes(payload.to_time):
            raise ValidationFailed(f"Window {payload.from_time}–{payload.to_time} ends before it starts")

        existing = await self.repo.list_windows(payload.clinic_id, payload.practitioner_id, weekday=payload.weekday)
        for w in existing:
            if _overlaps(payload.from_time, payload.to_time, w.from_time, w.to_time):
                raise ValidationFailed(
                    f"Window {payload.from_time}–{payload.to_time} overlaps {w.from_time}–{w.to_time} "
                    f"on {WEEKDAY_NAMES_ES[payload.weekday]}"
                )

        data = payload.model_dump(exclude={"clinic_id"})
        obj = await self.repo.create_window(payload.clinic_id, **data)
        await self.s.commit()
        return obj

    async def list_windows(self, clinic_id: uuid.UUID, practitioner_id: uuid.UUID):
        return await self.repo.list_windows(clinic_id, practitioner_id)

    async def delete_window(self, window_id: uuid.UUID) -> None:
        obj = await self.repo.get_window(window_id)
        if not obj:
            raise NotFound("Availability window not found")
        await self.repo.delete_window(obj)
        await self.s.commit()

    async def copy_schedule(self, clinic_id: uuid.UUID, from_practitioner_id: uuid.UUID, to_practitioner_id: uuid.UUID) -> list[PractitionerAvailability]:
        """Replace the target's weekly schedule with a copy of the source's."""
        if from_practitioner_id == to_practitioner_id:
            raise ValidationFailed("Source and target practitioner are the same")
        source = await self.repo.list_windows(clinic_id, from_practitioner_id)
        removed = await self.repo.delete_all_for(clinic_id, to_practitioner_id)
        copies = []
        for w in source:
            copies.append(await self.repo.create_window(
                clinic_id,
                practitioner_id=to_practitioner_id,
                weekday=w.weekday,
                from_time=w.from_time,
                to_time=w.to_time,
                slot_minutes=w.slot_minutes,
            ))
        await self.s.commit()
        logger.info(f"Copied {len(copies)} windows from {from_practitioner_id} to {to_practitioner_id} (replaced {removed})")
        return copies
