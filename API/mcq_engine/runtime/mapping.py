from __future__ import annotations

from mcq_engine.agents.tree_mapper import TreeMappingAgent
from mcq_engine.core.errors import GenerationExhaustedError
from mcq_engine.core.logging import DOMAIN_MAPPING, get_domain_logger
from mcq_engine.data.books import get_book, list_chapters
from mcq_engine.memory.store import ContentStore

logger = get_domain_logger(__name__, DOMAIN_MAPPING)


async def map_chapter(agent: TreeMappingAgent, store: ContentStore, category: str, chapter: str) -> dict:
    """
    Build the chapter tree, or extend it when one is already stored.

    Concurrent mappers of the same chapter overwrite each other (last writer wins).
    """
    get_book(category)
    existing = store.find_mapping(category, chapter)
    if existing and existing.get("mapped") and isinstance(existing.get("mappings"), dict):
        logger.info("Repopulating chapter %s in %s", chapter, category)
        tree = await agent.enhance_tree(category, chapter, existing["mappings"])
        action = "enhanced"
    else:
        logger.info("Mapping chapter %s in %s", chapter, category)
        tree = await agent.generate_tree(category, chapter)
        action = "generated"
    doc = store.save_mapping(category, chapter, tree)
    return {"action": action, **doc}


async def map_book(agent: TreeMappingAgent, store: ContentStore, category: str) -> dict:
    """Map every unmapped chapter of a category's book, continuing past chapters that fail."""
    get_book(category)
    chapters = list_chapters(category)
    pending = [chapter for chapter in chapters if not (store.find_mapping(category, chapter) or {}).get("mapped")]
    skipped = [chapter for chapter in chapters if chapter not in pending]
    if not pending:
        return {
            "category": category,
            "message": f"All chapters for {category} are already mapped",
            "mapped": [],
            "skipped": skipped,
            "failed": [],
        }

    mapped, failed = [], []
    for chapter in pending:
        try:
            result = await map_chapter(agent, store, category, chapter)
        except GenerationExhaustedError as exc:
            logger.error("Failed to map %s - %s: %s", category, chapter, exc)
            failed.append({"chapter": chapter, "error": str(exc)})
            continue
        mapped.append({"chapter": chapter, "action": result["action"]})
    logger.info("Mapped %d chapters of %s, skipped %d, failed %d", len(mapped), category, len(skipped), len(failed))
    return {
        "category": category,
        "message": f"Mapped {len(mapped)} of {len(pending)} unmapped chapters for {category}",
        "mapped": mapped,
        "skipped": skipped,
        "failed": failed,
    }


def book_overview(store: ContentStore, category: str) -> dict:
    book = get_book(category)
    stored = {doc["chapter"]: doc for doc in store.list_mappings(category)}
    chapters = []
    for chapter in list_chapters(category):
        doc = stored.get(chapter)
        chapters.append({
            "chapter": chapter,
            "isMapped": bool(doc and doc.get("mapped")),
            "topicCount": len((doc or {}).get("mappings", {}).get("topics", []) or []),
        })
    return {**book, "chapters": chapters}
