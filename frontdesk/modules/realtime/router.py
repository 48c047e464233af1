import json
import uuid
import asyncio
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import select, and_, or_
from frontdesk.core.security import get_principal
from frontdesk.modules.events.outbox import EventOutbox

router = APIRouter()

POLL_SECONDS = 1.0

@router.get("/realtime/events", dependencies=[Depends(get_principal)])
async def realtime_events(request: Request, clinic_id: uuid.UUID, after: str | None = None):
    """Server-sent change notifications for one clinic; clients re-read on each event."""
    session_factory = request.app.state.session_factory
    last_seen = datetime.fromisoformat(after) if after else datetime.now(timezone.utc)

    async def event_stream():
        nonlocal last_seen
        while not await request.is_disconnected():
            async with session_factory() as s:
                q = select(EventOutbox).where(and_(
                    # global holidays carry no clinic
                    or_(EventOutbox.clinic_id == clinic_id, EventOutbox.clinic_id.is_(None)),
                    EventOutbox.occurred_at > last_seen,
                )).order_by(EventOutbox.occurred_at.asc()).limit(100)
                rows = (await s.execute(q)).scalars().all()
            for r in rows:
                last_seen = r.occurred_at
                data = {
                    "type": r.event_type,
                    "topic": r.topic,
                    "subject": f"{r.subject_type}:{r.subject_id}",
                    "occurred_at": r.occurred_at.isoformat(),
                }
                yield f"event: {r.subject_type}\n"
                yield f"data: {json.dumps(data)}\n\n"
            await asyncio.sleep(POLL_SECONDS)

    return StreamingResponse(event_stream(), media_type="text/event-stream")
