from fastapi import APIRouter
from frontdesk.modules.appointments.router import router as appointments_router
from frontdesk.modules.availability.router import router as availability_router
from frontdesk.modules.exceptions.router import router as exceptions_router
from frontdesk.modules.settings.router import router as settings_router
from frontdesk.modules.realtime.router import router as realtime_router

api_router = APIRouter()
api_router.include_router(appointments_router, tags=["appointments"])
api_router.include_router(availability_router, tags=["availability"])
api_router.include_router(exceptions_router, tags=["exceptions"])
api_router.include_router(settings_router, tags=["settings"])
api_router.include_router(realtime_router, tags=["realtime"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
