from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from mcq_engine.runtime.container import Services, get_services

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/stream")
async def stream_events(replay: int = Query(default=20, ge=0, le=200), services: Services = Depends(get_services)):
    """Live batch progress for dashboards; replays the most recent events first."""
    bus = services.events
    queue = await bus.subscribe(replay_last=replay)

    async def generator():
        try:
            while True:
                event = await queue.get()
                yield f"id: {event['seq']}\nevent: {event['type']}\ndata: {json.dumps(event)}\n\n"
        finally:
            await bus.unsubscribe(queue)

    return StreamingResponse(generator(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})


@router.get("/history")
async def events_history(
    source: str | None = None,
    limit: int | None = Query(default=None, ge=1, le=200),
    services: Services = Depends(get_services),
):
    return {"events": services.events.history(source=source, limit=limit), "subscribers": services.events.subscriber_count}
