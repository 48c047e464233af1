import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from frontdesk.core.errors import ValidationFailed
from frontdesk.core.slots import generate_time_slots, to_minutes
from frontdesk.modules.settings.models import ClinicSettings
from frontdesk.modules.settings.repository import ClinicSettingsRepository
from frontdesk.modules.settings.schemas import ClinicSettingsUpdate

logger = logging.getLogger(__name__)

class ClinicSettingsService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ClinicSettingsRepository(session)

    async def get_or_create(self, clinic_id: uuid.UUID) -> ClinicSettings:
        obj = await self.repo.get(clinic_id)
        if obj is None:
            logger.info(f"No settings for clinic {clinic_id}; creating defaults")
            obj = await self.repo.create(clinic_id)
            await self.session.commit()
        return obj

    async def update(self, clinic_id: uuid.UUID, payload: ClinicSettingsUpdate) -> ClinicSettings:
        obj = await self.get_or_create(clinic_id)
        data = payload.model_dump(exclude_unset=True)
        start = data.get("workday_start", obj.workday_start)
        end = data.get("workday_end", obj.workday_end)
        if to_minutes(start) >= to_minutes(end):
            raise ValidationFailed("workday_start must be before workday_end")
        for k, v in data.items():
            setattr(obj, k, v)
        await self.session.commit()
        return obj

    async def time_slots(self, clinic_id: uuid.UUID) -> list[str]:
        obj = await self.get_or_create(clinic_id)
        return generate_time_slots(obj.workday_start, obj.workday_end, obj.min_slot_minutes)
