from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from mcq_engine.agents.evaluator import DEFAULT_EVALUATION_INSTRUCTION, INSTRUCTION_KEY
from mcq_engine.runtime.batch import promote_to_good, transfer_good_to_final
from mcq_engine.runtime.container import Services, get_services
from mcq_engine.schemas.requests import InstructionRequest, SaveMCQRequest

router = APIRouter(prefix="/mcqs", tags=["mcqs"])

Stage = Literal["to_be_evaluated", "good", "modified", "final"]
ReviewStage = Literal["to_be_evaluated", "modified"]


@router.get("/counts")
async def collection_counts(services: Services = Depends(get_services)):
    counts = services.store.stage_counts()
    return {
        "toBeEvaluatedCount": counts["to_be_evaluated"],
        "goodMcqsCount": counts["good"],
        "modifiedMcqsCount": counts["modified"],
        "finalMcqsCount": counts["final"],
    }


@router.get("/instructions/evaluation")
async def get_evaluation_instruction(services: Services = Depends(get_services)):
    stored = services.store.get_instruction(INSTRUCTION_KEY)
    return {"instruction": stored or DEFAULT_EVALUATION_INSTRUCTION, "isDefault": stored is None}


@router.put("/instructions/evaluation")
async def save_evaluation_instruction(payload: InstructionRequest, services: Services = Depends(get_services)):
    services.store.save_instruction(INSTRUCTION_KEY, payload.instruction)
    return {"message": "Instructions saved"}


@router.post("/transfer-good")
async def transfer_good(services: Services = Depends(get_services)):
    transferred = transfer_good_to_final(services.store)
    if not transferred:
        return {"message": "No MCQs found in good stage to transfer", "transferred": 0}
    return {"message": f"Successfully transferred {transferred} MCQs to final stage", "transferred": transferred}


@router.post("")
async def save_mcq(payload: SaveMCQRequest, services: Services = Depends(get_services)):
    mcq_id = services.store.insert_mcq("to_be_evaluated", {
        "category": payload.category,
        "chapter": payload.chapter,
        "mcq": payload.mcq.to_document(),
    })
    return {"message": "MCQ saved successfully", "id": mcq_id}


@router.get("/{stage}")
async def list_stage(stage: Stage, limit: int | None = None, services: Services = Depends(get_services)):
    return {"stage": stage, "mcqs": services.store.list_mcqs(stage, limit=limit)}


@router.get("/{stage}/{mcq_id}")
async def get_mcq(stage: Stage, mcq_id: str, services: Services = Depends(get_services)):
    doc = services.store.get_mcq(stage, mcq_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="MCQ not found")
    return doc


@router.delete("/{stage}/{mcq_id}")
async def delete_mcq(stage: Stage, mcq_id: str, services: Services = Depends(get_services)):
    if not services.store.delete_mcq(stage, mcq_id):
        raise HTTPException(status_code=404, detail="MCQ not found")
    return {"message": "MCQ deleted", "id": mcq_id}


@router.post("/{stage}/{mcq_id}/approve")
async def approve_mcq(stage: ReviewStage, mcq_id: str, services: Services = Depends(get_services)):
    doc = services.store.get_mcq(stage, mcq_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="MCQ not found")
    new_id = promote_to_good(services.store, stage, doc)
    return {"message": "MCQ transferred to good stage", "id": new_id}


@router.post("/{stage}/{mcq_id}/evaluate")
async def evaluate_mcq(stage: ReviewStage, mcq_id: str, services: Services = Depends(get_services)):
    doc = services.store.get_mcq(stage, mcq_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="MCQ not found")
    result = await services.evaluation_agent.evaluate(doc, services.store.get_instruction(INSTRUCTION_KEY))
    return result.model_dump(by_alias=True)
