from __future__ import annotations

import random

from fastapi import APIRouter, Depends, HTTPException

from mcq_engine.api.mappings import resolve_chapter
from mcq_engine.content.catalog import COMBINATION_TEMPLATES, MCQ_STRUCTURES, format_options_template, random_structure
from mcq_engine.content.selector import node_exists, select_random_node
from mcq_engine.data.books import get_book
from mcq_engine.runtime.container import Services, get_services
from mcq_engine.schemas.mcq import STATEMENTS_PER_BATCH, TopicContext
from mcq_engine.schemas.requests import StatementRequest, TransformRequest

router = APIRouter(prefix="/statements", tags=["statements"])


@router.post("/generate")
async def generate_statements(payload: StatementRequest, services: Services = Depends(get_services)):
    chapter = resolve_chapter(payload.category, payload.chapter)
    tree = services.batches.load_tree(payload.category, chapter)
    if payload.node is None:
        node = select_random_node(tree)
    elif not node_exists(tree, payload.node):
        raise HTTPException(status_code=400, detail=f"Invalid node: {payload.node} not found in tree structure")
    else:
        node = payload.node
    false_count = payload.false_count if payload.false_count is not None else random.randint(1, STATEMENTS_PER_BATCH)

    batch = await services.statement_agent.generate(
        TopicContext(category=payload.category, chapter=chapter, node=node), false_count
    )
    return {
        "category": payload.category,
        "chapter": chapter,
        "node": node,
        "falseCount": false_count,
        "statements": [s.model_dump(by_alias=True) for s in batch.statements],
    }


@router.post("/transform")
async def transform_statements(payload: TransformRequest, services: Services = Depends(get_services)):
    transformed = services.transformer.transform(payload.statements)
    result = {
        "mcq": transformed.mcq.to_document(),
        "structure": transformed.structure,
        "phrase": transformed.phrase,
        "selectedCount": transformed.selected_count,
        "fallback": transformed.fallback,
    }
    if payload.store and payload.category and payload.chapter:
        book = get_book(payload.category)
        result["id"] = services.store.insert_mcq("to_be_evaluated", {
            "book": book["book_name"],
            "category": payload.category,
            "chapter": payload.chapter,
            "statements": [s.model_dump(by_alias=True) for s in payload.statements],
            "selected_mcq_structure": {
                "name": transformed.structure,
                "options_template": format_options_template(list(transformed.mcq.options.values())),
            },
            "mcq": result["mcq"],
        })
    return result


@router.post("/produce-one/{category}")
async def produce_one(category: str, chapter: str | None = None, services: Services = Depends(get_services)):
    if chapter is not None:
        chapter = resolve_chapter(category, chapter)
    doc = await services.batches.produce_one(category, chapter=chapter)
    return {"message": "MCQ produced", "id": doc["id"], "mcq": doc["mcq"], "node": doc["node"], "chapter": doc["chapter"]}


@router.get("/structures")
async def list_structures():
    return {
        "structures": [dict(s) for s in MCQ_STRUCTURES],
        "combinations": {str(k): [dict(t) for t in templates] for k, templates in COMBINATION_TEMPLATES.items()},
    }


@router.get("/structures/random")
async def pick_structure(exclude: str | None = None):
    """Suggest a question layout different from the one used last."""
    return {"structure": dict(random_structure(exclude=exclude))}
