from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from mcq_engine.agents.evaluator import MCQEvaluationAgent
from mcq_engine.agents.statement_generator import StatementGenerationAgent
from mcq_engine.agents.tree_mapper import TreeMappingAgent
from mcq_engine.content.transformer import StatementTransformer
from mcq_engine.core.event_bus import EventBus
from mcq_engine.core.llm_provider import BaseLLMProvider, get_llm_provider
from mcq_engine.core.locks import SessionRegistry, ThreadLockRegistry
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.core.resilience import BreakerRegistry
from mcq_engine.memory.store import ContentStore, build_content_store
from mcq_engine.runtime.batch import BatchRunner


@dataclass
class Services:
    """Process-lifetime collaborators shared by the HTTP layer."""

    store: ContentStore
    oracle: ThreadedOracle
    locks: ThreadLockRegistry
    sessions: SessionRegistry
    breakers: BreakerRegistry
    events: EventBus
    tree_agent: TreeMappingAgent
    statement_agent: StatementGenerationAgent
    evaluation_agent: MCQEvaluationAgent
    transformer: StatementTransformer
    batches: BatchRunner


def build_services(
    store: ContentStore | None = None,
    provider: BaseLLMProvider | None = None,
    transformer: StatementTransformer | None = None,
    item_delay_seconds: float | None = None,
) -> Services:
    breakers = BreakerRegistry()
    locks = ThreadLockRegistry()
    sessions = SessionRegistry()
    events = EventBus()
    store = store or build_content_store()
    oracle = ThreadedOracle(provider or get_llm_provider(role="mcq_engine", breakers=breakers), locks)
    statement_agent = StatementGenerationAgent(oracle)
    evaluation_agent = MCQEvaluationAgent(oracle)
    transformer = transformer or StatementTransformer()
    return Services(
        store=store,
        oracle=oracle,
        locks=locks,
        sessions=sessions,
        breakers=breakers,
        events=events,
        tree_agent=TreeMappingAgent(oracle),
        statement_agent=statement_agent,
        evaluation_agent=evaluation_agent,
        transformer=transformer,
        batches=BatchRunner(
            store,
            sessions,
            events,
            statement_agent,
            evaluation_agent,
            transformer,
            item_delay_seconds=item_delay_seconds,
        ),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services()
