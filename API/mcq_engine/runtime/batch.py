"""
Long-running MCQ pipeline loops.

Both loops are async generators of progress events. Every finished item is written to
the store before the next one starts, and cancellation is checked between items only.
"""
from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator
from typing import Any

from mcq_engine.agents.evaluator import INSTRUCTION_KEY, MCQEvaluationAgent
from mcq_engine.agents.statement_generator import StatementGenerationAgent
from mcq_engine.content.catalog import format_options_template
from mcq_engine.content.selector import select_random_node
from mcq_engine.content.transformer import StatementTransformer
from mcq_engine.core.errors import EmptyTreeError, GenerationExhaustedError, MappingNotFoundError, MCQEngineError
from mcq_engine.core.event_bus import EventBus
from mcq_engine.core.locks import SessionRegistry
from mcq_engine.core.logging import DOMAIN_BATCH, get_domain_logger
from mcq_engine.core.settings import settings
from mcq_engine.data.books import get_book
from mcq_engine.memory.store import ContentStore
from mcq_engine.schemas.mcq import STATEMENTS_PER_BATCH, TopicContext

logger = get_domain_logger(__name__, DOMAIN_BATCH)

STATEMENT_BATCH = "statement-batch"
MASS_EVALUATION = "mass-em"


class BatchRunner:
    def __init__(
        self,
        store: ContentStore,
        sessions: SessionRegistry,
        events: EventBus,
        statement_agent: StatementGenerationAgent,
        evaluation_agent: MCQEvaluationAgent,
        transformer: StatementTransformer,
        rng: random.Random | None = None,
        item_delay_seconds: float | None = None,
    ):
        self.store = store
        self.sessions = sessions
        self.events = events
        self.statement_agent = statement_agent
        self.evaluation_agent = evaluation_agent
        self.transformer = transformer
        self.rng = rng or random.Random()
        self.item_delay_seconds = settings.batch_item_delay_seconds if item_delay_seconds is None else item_delay_seconds

    async def _emit(self, kind: str, event: dict) -> dict:
        await self.events.publish(f"batch.{event['status']}", kind, event)
        return event

    def mapped_chapters(self, category: str) -> list[str]:
        return [
            doc["chapter"]
            for doc in self.store.list_mappings(category)
            if isinstance(doc.get("mappings"), dict) and doc["mappings"].get("topics")
        ]

    def load_tree(self, category: str, chapter: str) -> dict:
        doc = self.store.find_mapping(category, chapter)
        if not doc or not isinstance(doc.get("mappings"), dict):
            raise MappingNotFoundError(f"No mapping found for {category} - {chapter}")
        return doc["mappings"]

    async def produce_one(
        self,
        category: str,
        chapter: str | None = None,
        node: str | None = None,
        false_count: int | None = None,
    ) -> dict:
        """Generate, transform and store one MCQ; returns the stored document."""
        book = get_book(category)
        if chapter is None:
            chapters = self.mapped_chapters(category)
            if not chapters:
                raise MappingNotFoundError(f"No mapped chapters for {category}")
            chapter = self.rng.choice(chapters)
        tree = self.load_tree(category, chapter)
        node = node or select_random_node(tree, self.rng)
        if false_count is None:
            false_count = self.rng.randint(1, STATEMENTS_PER_BATCH)

        batch = await self.statement_agent.generate(
            TopicContext(category=category, chapter=chapter, node=node), false_count
        )
        transformed = self.transformer.transform(batch)
        doc = {
            "book": book["book_name"],
            "category": category,
            "chapter": chapter,
            "node": node,
            "falseCount": false_count,
            "statements": [s.model_dump(by_alias=True) for s in batch.statements],
            "selected_mcq_structure": {
                "name": transformed.structure,
                "options_template": format_options_template(list(transformed.mcq.options.values())),
            },
            "mcq": transformed.mcq.to_document(),
        }
        doc["id"] = self.store.insert_mcq("to_be_evaluated", doc)
        return doc

    async def produce_statement_mcqs(
        self,
        category: str,
        target: int | None = None,
        session_id: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        get_book(category)
        total = target or settings.batch_target_items
        session = self.sessions.start(STATEMENT_BATCH, session_id=session_id, category=category)
        current = 0
        failures = 0
        try:
            yield await self._emit(STATEMENT_BATCH, {"status": "started", "session_id": session.session_id, "current": 0, "total": total})
            try:
                if not self.mapped_chapters(category):
                    yield await self._emit(STATEMENT_BATCH, {"status": "error", "message": f"No mapped chapters for {category}"})
                    return

                while current < total:
                    if self.sessions.is_cancelled(session.session_id):
                        logger.info("Statement batch %s cancelled at %d/%d", session.session_id, current, total)
                        yield await self._emit(
                            STATEMENT_BATCH,
                            {"status": "completed", "cancelled": True, "current": current, "total": total},
                        )
                        return
                    try:
                        await self.produce_one(category)
                    except (GenerationExhaustedError, EmptyTreeError, MappingNotFoundError) as exc:
                        failures += 1
                        logger.error("Skipping batch item for %s: %s", category, exc)
                        if failures >= settings.batch_max_consecutive_failures:
                            yield await self._emit(
                                STATEMENT_BATCH,
                                {"status": "error", "message": f"{failures} consecutive failures, last: {exc}", "current": current, "total": total},
                            )
                            return
                        continue
                    failures = 0
                    current += 1
                    yield await self._emit(STATEMENT_BATCH, {"status": "progress", "current": current, "total": total})
                    if self.item_delay_seconds:
                        await asyncio.sleep(self.item_delay_seconds)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Statement batch %s aborted at %d/%d", session.session_id, current, total)
                yield await self._emit(
                    STATEMENT_BATCH,
                    {"status": "error", "message": f"Batch aborted: {exc}", "current": current, "total": total},
                )
                return

            yield await self._emit(STATEMENT_BATCH, {"status": "completed", "cancelled": False, "current": current, "total": total})
        finally:
            self.sessions.finish(session.session_id)

    async def evaluate_pending(self, session_id: str | None = None) -> AsyncIterator[dict[str, Any]]:
        session = self.sessions.start(MASS_EVALUATION, session_id=session_id)
        counts = {"processedMcqs": 0, "goodMcqs": 0, "modifiedMcqs": 0, "failedMcqs": 0}
        try:
            yield await self._emit(MASS_EVALUATION, {"status": "started", "session_id": session.session_id, **counts})
            try:
                pending = self.store.list_mcqs("to_be_evaluated")
                if not pending:
                    yield await self._emit(MASS_EVALUATION, {"status": "completed", **counts, "message": "No MCQs to evaluate"})
                    return
                instruction = self.store.get_instruction(INSTRUCTION_KEY)

                for entry in pending:
                    if self.sessions.is_cancelled(session.session_id):
                        logger.info("Mass evaluation %s cancelled", session.session_id)
                        yield await self._emit(
                            MASS_EVALUATION,
                            {"status": "completed", "cancelled": True, **counts, "message": "Mass evaluation and modification cancelled"},
                        )
                        return
                    try:
                        result = await self.evaluation_agent.evaluate(entry, instruction)
                    except GenerationExhaustedError as exc:
                        counts["failedMcqs"] += 1
                        logger.error("Failed to evaluate MCQ %s: %s", entry.get("id"), exc)
                        continue

                    counts["processedMcqs"] += 1
                    if result.is_clean:
                        promote_to_good(self.store, "to_be_evaluated", entry)
                        counts["goodMcqs"] += 1
                    else:
                        self.store.insert_mcq("modified", {
                            **_lineage(entry),
                            "mcq": result.modified_mcq.to_document(),
                            "faults": result.faults,
                            "originalMcqId": entry["id"],
                        })
                        self.store.delete_mcq("to_be_evaluated", entry["id"])
                        counts["modifiedMcqs"] += 1

                    yield await self._emit(MASS_EVALUATION, {"status": "progress", **counts})
                    if self.item_delay_seconds:
                        await asyncio.sleep(self.item_delay_seconds)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Mass evaluation %s aborted", session.session_id)
                yield await self._emit(MASS_EVALUATION, {"status": "error", **counts, "message": f"Mass evaluation aborted: {exc}"})
                return

            yield await self._emit(MASS_EVALUATION, {"status": "completed", "cancelled": False, **counts})
        finally:
            self.sessions.finish(session.session_id)

    def stop(self, kind: str, session_id: str | None = None, category: str | None = None) -> list[str]:
        if session_id:
            return [session_id] if self.sessions.cancel(session_id, kind=kind) else []
        return self.sessions.cancel_matching(kind, category=category)


def _lineage(entry: dict) -> dict:
    keys = ("book", "category", "chapter", "node", "selected_mcq_structure")
    return {key: entry[key] for key in keys if key in entry}


def promote_to_good(store: ContentStore, stage: str, entry: dict) -> str:
    """Copy ``entry`` into the good stage, then remove it from ``stage``."""
    new_id = store.insert_mcq("good", {**_lineage(entry), "mcq": entry["mcq"], "transferredFrom": entry["id"]})
    store.delete_mcq(stage, entry["id"])
    return new_id


def transfer_good_to_final(store: ContentStore) -> int:
    transferred = 0
    for entry in store.list_mcqs("good"):
        try:
            book = get_book(entry.get("category", ""))["book_name"]
        except MCQEngineError:
            book = "Unknown Book"
        final = {key: value for key, value in entry.items() if key not in ("id", "transferredFrom", "createdAt")}
        final["book"] = book
        store.insert_mcq("final", final)
        store.delete_mcq("good", entry["id"])
        transferred += 1
    logger.info("Transferred %d MCQs to the final stage", transferred)
    return transferred
