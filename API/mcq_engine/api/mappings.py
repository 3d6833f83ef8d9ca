from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from mcq_engine.content.selector import flatten_node_labels, select_random_node
from mcq_engine.data.books import CATEGORY_BOOKS, full_chapter_name, get_book, is_known_chapter
from mcq_engine.runtime.container import Services, get_services
from mcq_engine.runtime.mapping import book_overview, map_book, map_chapter
from mcq_engine.schemas.requests import GenerateMappingRequest

router = APIRouter(prefix="/mappings", tags=["mappings"])


def resolve_chapter(category: str, chapter: str) -> str:
    get_book(category)
    resolved = full_chapter_name(category, chapter)
    if not is_known_chapter(category, resolved):
        raise HTTPException(status_code=400, detail=f"Missing or invalid chapter: {chapter}")
    return resolved


@router.get("")
async def list_books(services: Services = Depends(get_services)):
    return {"books": [book_overview(services.store, category) for category in CATEGORY_BOOKS]}


@router.post("/chapter")
async def map_single_chapter(payload: GenerateMappingRequest, services: Services = Depends(get_services)):
    chapter = resolve_chapter(payload.category, payload.chapter)
    result = await map_chapter(services.tree_agent, services.store, payload.category, chapter)
    return {
        "message": f"Successfully {result['action']} mapping for {chapter} in {payload.category}",
        "action": result["action"],
        "topicCount": len(result["mappings"].get("topics", [])),
    }


@router.post("/book/{category}")
async def map_whole_book(category: str, services: Services = Depends(get_services)):
    get_book(category)
    return await map_book(services.tree_agent, services.store, category)


@router.get("/{category}")
async def get_book_mappings(category: str, services: Services = Depends(get_services)):
    return book_overview(services.store, category)


@router.get("/{category}/tree")
async def get_tree(category: str, chapter: str, services: Services = Depends(get_services)):
    chapter = resolve_chapter(category, chapter)
    tree = services.batches.load_tree(category, chapter)
    return {"category": category, "chapter": chapter, "mappings": tree, "nodes": flatten_node_labels(tree)}


@router.get("/{category}/random-node")
async def random_node(category: str, chapter: str, services: Services = Depends(get_services)):
    chapter = resolve_chapter(category, chapter)
    tree = services.batches.load_tree(category, chapter)
    return {"category": category, "chapter": chapter, "node": select_random_node(tree)}
