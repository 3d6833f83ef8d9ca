from __future__ import annotations

import json

import httpx
import pytest

from conftest import ScriptedProvider, statements_reply
from mcq_engine.agents.statement_generator import StatementGenerationAgent, build_statement_prompt
from mcq_engine.core.errors import ContractViolationError, GenerationExhaustedError, OracleUnavailableError
from mcq_engine.core.locks import ThreadLockRegistry
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.schemas.mcq import TopicContext

CONTEXT = TopicContext(category="Polity", chapter="Chapter 7 Fundamental Rights", node="Article 14")


def _agent(*replies) -> tuple[StatementGenerationAgent, ScriptedProvider]:
    provider = ScriptedProvider(replies)
    oracle = ThreadedOracle(provider, ThreadLockRegistry(), history_turns=0)
    return StatementGenerationAgent(oracle, max_attempts=3), provider


@pytest.mark.asyncio
@pytest.mark.parametrize("false_count", [0, 1, 2, 3, 4])
async def test_generate_returns_exact_false_count(false_count):
    agent, provider = _agent(statements_reply(false_count))
    result = await agent.generate(CONTEXT, false_count)
    assert len(result.statements) == 4
    assert result.false_count == false_count
    assert all(s.text and s.reason for s in result.statements)
    assert len(provider.prompts) == 1


@pytest.mark.asyncio
async def test_retries_with_same_prompt_after_count_violation():
    agent, provider = _agent(statements_reply(1), statements_reply(2))
    result = await agent.generate(CONTEXT, 2)
    assert result.false_count == 2
    assert len(provider.prompts) == 2
    assert provider.prompts[0] == provider.prompts[1]


@pytest.mark.asyncio
async def test_exhaustion_after_three_violations():
    agent, provider = _agent(statements_reply(0), '{"statements": []}', "not json at all")
    with pytest.raises(GenerationExhaustedError) as excinfo:
        await agent.generate(CONTEXT, 3)
    assert isinstance(excinfo.value.__cause__, ContractViolationError)
    assert len(provider.prompts) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "statement",
    [
        {"text": "", "isTrue": True, "reason": "Correct: r"},
        {"text": "t", "isTrue": True, "reason": "   "},
        {"text": "t", "isTrue": True},
        {"text": "t", "isTrue": "true", "reason": "Correct: r"},
    ],
)
async def test_malformed_statement_is_a_contract_violation(statement):
    good = json.loads(statements_reply(0))["statements"]
    bad = json.dumps({"statements": [statement, *good[1:]]})
    agent, provider = _agent(bad, bad, bad)
    with pytest.raises(GenerationExhaustedError):
        await agent.generate(CONTEXT, 0)
    assert len(provider.prompts) == 3


@pytest.mark.asyncio
async def test_accepts_fenced_json():
    agent, _ = _agent(f"```json\n{statements_reply(1)}\n```")
    result = await agent.generate(CONTEXT, 1)
    assert result.false_count == 1


@pytest.mark.asyncio
async def test_oracle_outage_is_retried():
    agent, provider = _agent(None, httpx.ConnectError("down"), statements_reply(4))
    result = await agent.generate(CONTEXT, 4)
    assert result.false_count == 4
    assert len(provider.prompts) == 3


@pytest.mark.asyncio
async def test_non_json_provider_body_is_retried():
    agent, provider = _agent(ValueError("Expecting value"), statements_reply(2))
    result = await agent.generate(CONTEXT, 2)
    assert result.false_count == 2
    assert len(provider.prompts) == 2


@pytest.mark.asyncio
async def test_persistent_outage_exhausts_with_oracle_cause():
    agent, _ = _agent()
    with pytest.raises(GenerationExhaustedError) as excinfo:
        await agent.generate(CONTEXT, 1)
    assert isinstance(excinfo.value.__cause__, OracleUnavailableError)


@pytest.mark.asyncio
@pytest.mark.parametrize("false_count", [-1, 5, True, 2.0])
async def test_invalid_false_count_fails_before_any_call(false_count):
    agent, provider = _agent(statements_reply(1))
    with pytest.raises(ValueError):
        await agent.generate(CONTEXT, false_count)
    assert provider.prompts == []


def test_prompt_pins_counts_and_assignments():
    prompt = build_statement_prompt(CONTEXT, 2)
    assert "EXACTLY 4 STATEMENTS with EXACTLY 2 FALSE STATEMENTS and 2 TRUE STATEMENTS" in prompt
    assert "- Statement 1: False (incorrect fact)" in prompt
    assert "- Statement 2: False (incorrect fact)" in prompt
    assert "- Statement 3: True (correct fact)" in prompt
    assert '"Article 14"' in prompt

    assert "All statements (1-4): True" in build_statement_prompt(CONTEXT, 0)


@pytest.mark.asyncio
async def test_run_returns_wire_shape():
    agent, _ = _agent(statements_reply(3))
    out = await agent.run({"category": "Polity", "chapter": "Chapter 6 Citizenship", "node": "Citizenship", "false_count": 3})
    assert out["falseCount"] == 3
    assert sum(1 for s in out["statements"] if not s["isTrue"]) == 3
