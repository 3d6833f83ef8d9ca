from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from mcq_engine.core.errors import ContractViolationError, GenerationExhaustedError, OracleUnavailableError
from mcq_engine.core.json_parser import parse_llm_object
from mcq_engine.core.oracle import ThreadedOracle

T = TypeVar("T")


class BaseAgent(ABC):
    @abstractmethod
    async def run(self, input_data: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError


class OracleAgent(BaseAgent):
    """Agent that talks to the oracle and retries until the reply satisfies a contract."""

    task_name = "oracle task"

    def __init__(self, oracle: ThreadedOracle, max_attempts: int, logger):
        self.oracle = oracle
        self.max_attempts = max(1, max_attempts)
        self.logger = logger

    async def _exchange(
        self,
        thread_id: str | None,
        prompt: str,
        validate: Callable[[dict], T],
    ) -> T:
        """
        Send ``prompt`` up to ``max_attempts`` times on one thread.

        ``validate`` receives the parsed JSON object and raises ContractViolationError
        when the reply breaks the contract. Exhaustion raises GenerationExhaustedError
        chained from the last failure.
        """
        own_thread = thread_id is None
        thread = thread_id or self.oracle.create_thread()
        last_error: Exception | None = None
        try:
            for attempt in range(1, self.max_attempts + 1):
                self.logger.info("Attempt %d to run %s on %s", attempt, self.task_name, thread)
                try:
                    reply = await self.oracle.ask(thread, prompt)
                    parsed = parse_llm_object(reply)
                    if not parsed.ok:
                        raise ContractViolationError(f"unparseable reply: {parsed.error}")
                    return validate(parsed.value)
                except (ContractViolationError, OracleUnavailableError) as exc:
                    last_error = exc
                    self.logger.warning("Attempt %d of %s failed: %s", attempt, self.task_name, exc)
        finally:
            if own_thread:
                self.oracle.discard_thread(thread)
        raise GenerationExhaustedError(
            f"Failed to run {self.task_name} after {self.max_attempts} attempts: {last_error}"
        ) from last_error
