import time
import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from frontdesk.core.config import settings
from frontdesk.core.logging import setup_logging, request_id_ctx
from frontdesk.api.router import api_router
from frontdesk.core.db import SessionLocal, init_models
from frontdesk.core.errors import AdmissionRejected, InvalidStatusTransition, NotFound, ValidationFailed
from frontdesk.modules.appointments.admission import AdmissionService
from frontdesk.modules.appointments.sweeper import NoShowSweeper, SweepScheduler
from frontdesk.modules.events.feed import CalendarChangeFeed
from frontdesk.modules.events.outbox import run_outbox_relay
from frontdesk.modules.exceptions.resolver import ExceptionResolvers
from frontdesk.platform.provider_registry import registry


setup_logging()
app = FastAPI(title=settings.APP_NAME)

# shared, process-wide collaborators; tests swap these on app.state
app.state.session_factory = SessionLocal
app.state.resolvers = ExceptionResolvers(SessionLocal)
app.state.admission = AdmissionService(SessionLocal, app.state.resolvers)
app.state.sweep_scheduler = SweepScheduler(NoShowSweeper(SessionLocal))

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    request_id_ctx.set(rid)
    response = await call_next(request)
    return response


logger = logging.getLogger(__name__)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response

@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(AdmissionRejected)
async def admission_rejected_handler(request: Request, exc: AdmissionRejected):
    # also covers SlotTakenConcurrently through exc.code
    return JSONResponse(status_code=409, content={"code": exc.code, "reason": exc.reason})

@app.exception_handler(InvalidStatusTransition)
async def invalid_transition_handler(request: Request, exc: InvalidStatusTransition):
    return JSONResponse(status_code=400, content={"detail": str(exc), "current": exc.current, "requested": exc.requested})

@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal server error occurred."},
    )


@app.on_event("startup")
async def on_startup():
    await init_models()
    bus = registry.event_bus()
    if hasattr(bus, "start"):
        await bus.start()
    app.state.resolvers.attach(CalendarChangeFeed(bus))
    app.state.outbox_task = asyncio.create_task(run_outbox_relay(app.state.session_factory))
    app.state.sweeper_task = asyncio.create_task(app.state.sweep_scheduler.run())

@app.on_event("shutdown")
async def on_shutdown():
    for name in ("sweeper_task", "outbox_task"):
        task = getattr(app.state, name, None)
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    app.state.resolvers.detach()
    bus = registry.event_bus()
    if hasattr(bus, "close"):
        await bus.close()


app.include_router(api_router, prefix=settings.API_PREFIX)
