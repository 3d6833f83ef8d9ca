from __future__ import annotations

import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from mcq_engine.data.books import get_book
from mcq_engine.runtime.batch import MASS_EVALUATION, STATEMENT_BATCH
from mcq_engine.runtime.container import Services, get_services

router = APIRouter(prefix="/batches", tags=["batches"])


def _sse(events: AsyncIterator[dict]) -> StreamingResponse:
    async def generator():
        async for event in events:
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/active")
async def active_batches(services: Services = Depends(get_services)):
    return {"sessions": [s.to_dict() for s in services.sessions.active()]}


@router.get("/statements/{category}")
async def start_statement_batch(
    category: str,
    target: int | None = None,
    session_id: str | None = None,
    services: Services = Depends(get_services),
):
    get_book(category)
    if target is not None and target < 1:
        raise HTTPException(status_code=400, detail="target must be positive")
    return _sse(services.batches.produce_statement_mcqs(category, target=target, session_id=session_id))


@router.post("/statements/{category}/stop")
async def stop_statement_batch(category: str, session_id: str | None = None, services: Services = Depends(get_services)):
    stopped = services.batches.stop(STATEMENT_BATCH, session_id=session_id, category=category)
    if not stopped:
        raise HTTPException(status_code=404, detail=f"No active statement batch for {category}")
    return {"message": f"Batch production stop requested for {category}", "sessions": stopped}


@router.get("/evaluation")
async def start_mass_evaluation(session_id: str | None = None, services: Services = Depends(get_services)):
    return _sse(services.batches.evaluate_pending(session_id=session_id))


@router.post("/evaluation/stop")
async def stop_mass_evaluation(session_id: str | None = None, services: Services = Depends(get_services)):
    stopped = services.batches.stop(MASS_EVALUATION, session_id=session_id)
    if not stopped:
        raise HTTPException(status_code=404, detail="No active mass evaluation session found")
    return {"message": "Mass evaluation and modification stop requested", "sessions": stopped}
