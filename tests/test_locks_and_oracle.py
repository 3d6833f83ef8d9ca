from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedProvider
from mcq_engine.core.errors import OracleUnavailableError
from mcq_engine.core.locks import SessionRegistry, ThreadLockRegistry
from mcq_engine.core.oracle import ThreadedOracle


class SlowProvider(ScriptedProvider):
    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, prompt: str):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return f"reply to {prompt[-8:]}", {}


@pytest.mark.asyncio
async def test_same_thread_exchanges_never_overlap():
    provider = SlowProvider()
    oracle = ThreadedOracle(provider, ThreadLockRegistry(), history_turns=5)
    thread = oracle.create_thread()

    await asyncio.gather(*(oracle.ask(thread, f"prompt {i:02d}") for i in range(5)))

    assert provider.max_in_flight == 1
    assert len(oracle.history(thread)) == 5


@pytest.mark.asyncio
async def test_distinct_threads_run_in_parallel():
    provider = SlowProvider()
    oracle = ThreadedOracle(provider, ThreadLockRegistry(), history_turns=0)
    threads = [oracle.create_thread() for _ in range(4)]

    await asyncio.gather(*(oracle.ask(t, "hello") for t in threads))

    assert provider.max_in_flight > 1


@pytest.mark.asyncio
async def test_lock_registry_drops_released_keys():
    locks = ThreadLockRegistry()
    await locks.acquire("t1")
    assert locks.is_locked("t1")
    locks.release("t1")
    assert not locks.is_locked("t1")
    assert len(locks) == 0
    with pytest.raises(RuntimeError):
        locks.release("t1")


@pytest.mark.asyncio
async def test_waiter_gets_lock_after_holder_releases():
    locks = ThreadLockRegistry()
    order: list[str] = []

    async def holder():
        async with locks.hold("t"):
            order.append("holder-start")
            await asyncio.sleep(0.01)
            order.append("holder-end")

    async def waiter():
        await asyncio.sleep(0)
        async with locks.hold("t"):
            order.append("waiter")

    await asyncio.gather(holder(), waiter())
    assert order == ["holder-start", "holder-end", "waiter"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_history_is_replayed_into_later_prompts():
    provider = ScriptedProvider(["first answer", "second answer"])
    oracle = ThreadedOracle(provider, ThreadLockRegistry(), history_turns=1)
    thread = oracle.create_thread()

    await oracle.ask(thread, "first question")
    await oracle.ask(thread, "second question")

    assert provider.prompts[0] == "first question"
    assert "USER: first question" in provider.prompts[1]
    assert "ASSISTANT: first answer" in provider.prompts[1]
    assert provider.prompts[1].endswith("second question")


@pytest.mark.asyncio
async def test_empty_reply_raises_unavailable_and_releases_lock():
    locks = ThreadLockRegistry()
    oracle = ThreadedOracle(ScriptedProvider(), locks)
    with pytest.raises(OracleUnavailableError):
        await oracle.ask("thread_x", "anything")
    assert not locks.is_locked("thread_x")


@pytest.mark.asyncio
async def test_thread_history_keeps_only_replayed_turns():
    provider = ScriptedProvider([f"answer {i}" for i in range(5)])
    oracle = ThreadedOracle(provider, ThreadLockRegistry(), history_turns=2)

    for i in range(5):
        await oracle.ask("caller-thread", f"question {i}")

    assert [turn.prompt for turn in oracle.history("caller-thread")] == ["question 3", "question 4"]
    assert "USER: question 2" in provider.prompts[-1]
    assert "USER: question 1" not in provider.prompts[-1]


@pytest.mark.asyncio
async def test_history_disabled_keeps_nothing():
    oracle = ThreadedOracle(ScriptedProvider(["only answer"]), ThreadLockRegistry(), history_turns=0)
    await oracle.ask("t", "question")
    assert oracle.history("t") == []


@pytest.mark.asyncio
async def test_unreadable_provider_body_raises_unavailable():
    provider = ScriptedProvider([ValueError("Expecting value: line 1 column 1 (char 0)")])
    oracle = ThreadedOracle(provider, ThreadLockRegistry())
    with pytest.raises(OracleUnavailableError) as excinfo:
        await oracle.ask("t", "anything")
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert oracle.history("t") == []


def test_session_registry_cancellation():
    sessions = SessionRegistry()
    a = sessions.start("statement-batch", category="Polity")
    b = sessions.start("statement-batch", category="Economy")
    c = sessions.start("mass-em")

    assert sessions.cancel(c.session_id, kind="statement-batch") is False
    assert sessions.cancel_matching("statement-batch", category="Polity") == [a.session_id]
    assert sessions.is_cancelled(a.session_id)
    assert not sessions.is_cancelled(b.session_id)
    assert sessions.cancel(c.session_id) is True

    sessions.finish(a.session_id)
    assert sessions.get(a.session_id) is None
    assert {s.session_id for s in sessions.active()} == {b.session_id, c.session_id}
    assert sessions.cancel("missing") is False
