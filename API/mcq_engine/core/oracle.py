"""
Conversation threads on top of a text-generation provider.

A thread is an ordered exchange of prompts and replies. Only one exchange may be in
flight per thread id; the lock registry enforces that. Recent turns are replayed ahead
of the new prompt so providers without server-side threads still see the context.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass

import httpx

from mcq_engine.core.errors import OracleUnavailableError
from mcq_engine.core.llm_provider import BaseLLMProvider
from mcq_engine.core.locks import ThreadLockRegistry
from mcq_engine.core.logging import DOMAIN_ORACLE, get_domain_logger
from mcq_engine.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_ORACLE)


@dataclass(frozen=True)
class Turn:
    prompt: str
    reply: str


class ThreadedOracle:
    def __init__(
        self,
        provider: BaseLLMProvider,
        locks: ThreadLockRegistry,
        history_turns: int | None = None,
    ):
        self.provider = provider
        self.locks = locks
        self.history_turns = settings.oracle_history_turns if history_turns is None else history_turns
        self._threads: dict[str, list[Turn]] = {}

    def create_thread(self) -> str:
        thread_id = f"thread_{uuid.uuid4().hex}"
        self._threads[thread_id] = []
        return thread_id

    def discard_thread(self, thread_id: str) -> None:
        self._threads.pop(thread_id, None)

    def history(self, thread_id: str) -> list[Turn]:
        return list(self._threads.get(thread_id, []))

    def _compose(self, thread_id: str, prompt: str) -> str:
        turns = self._threads.get(thread_id, [])[-self.history_turns:] if self.history_turns > 0 else []
        if not turns:
            return prompt
        lines = ["Earlier messages in this conversation:"]
        for turn in turns:
            lines.append(f"USER: {turn.prompt.strip()}")
            lines.append(f"ASSISTANT: {turn.reply.strip()}")
        lines.append("")
        lines.append("New message:")
        lines.append(prompt)
        return "\n".join(lines)

    async def ask(self, thread_id: str, prompt: str) -> str:
        async with self.locks.hold(thread_id):
            composed = self._compose(thread_id, prompt)
            logger.info("Oracle request thread=%s provider=%s chars=%d", thread_id, self.provider.provider_name, len(composed))
            try:
                text, usage = await self.provider.generate(composed)
            except httpx.HTTPError as exc:
                raise OracleUnavailableError(f"oracle request failed: {exc}") from exc
            except ValueError as exc:
                raise OracleUnavailableError(f"oracle returned an unreadable body: {exc}") from exc
            if not text:
                raise OracleUnavailableError(
                    f"oracle returned no content (reason={usage.get('reason', 'empty_response')})"
                )
            logger.debug("Oracle usage thread=%s usage=%s", thread_id, usage)
            turns = self._threads.setdefault(thread_id, [])
            turns.append(Turn(prompt=prompt, reply=text))
            # Only the replayed window is kept.
            del turns[: max(len(turns) - self.history_turns, 0)]
            return text
