from __future__ import annotations

import json

import pytest

from conftest import ScriptedProvider
from mcq_engine.agents.evaluator import (
    DEFAULT_EVALUATION_INSTRUCTION,
    MCQEvaluationAgent,
    build_evaluation_prompt,
    validate_evaluation_reply,
)
from mcq_engine.core.errors import ContractViolationError, GenerationExhaustedError
from mcq_engine.core.locks import ThreadLockRegistry
from mcq_engine.core.oracle import ThreadedOracle

MCQ_DOC = {
    "question": ["Consider the following statements:", "1. a", "2. b", "Which of the following is correct?"],
    "options": {"A": "1 only", "B": "2 only", "C": "Both 1 and 2", "D": "None of the above"},
    "correctAnswer": "C",
    "explanation": "Statement 1 is correct: x Statement 2 is correct: y",
}
ENTRY = {
    "id": "abc",
    "mcq": MCQ_DOC,
    "selected_mcq_structure": {"options_template": "(a) 1 only (b) 2 only (c) Both 1 and 2 (d) None of the above"},
}


def _agent(*replies):
    provider = ScriptedProvider(replies)
    return MCQEvaluationAgent(ThreadedOracle(provider, ThreadLockRegistry(), history_turns=0), max_attempts=2), provider


@pytest.mark.asyncio
async def test_clean_evaluation():
    agent, provider = _agent(json.dumps({"faults": "", "modifiedMcq": None}))
    result = await agent.evaluate(ENTRY)
    assert result.is_clean
    assert result.modified_mcq is None
    assert DEFAULT_EVALUATION_INSTRUCTION in provider.prompts[0]


@pytest.mark.asyncio
async def test_faulty_evaluation_returns_modified_mcq():
    modified = {**MCQ_DOC, "correctAnswer": "A"}
    agent, _ = _agent(json.dumps({"faults": "Statement 2 is false", "modifiedMcq": modified}))
    result = await agent.evaluate(ENTRY, instruction="Be strict.")
    assert not result.is_clean
    assert result.faults == "Statement 2 is false"
    assert result.modified_mcq.correct_answer == "A"


@pytest.mark.asyncio
async def test_invalid_reply_is_retried_then_exhausted():
    bad = json.dumps({"faults": "x", "modifiedMcq": {**MCQ_DOC, "correctAnswer": "E"}})
    agent, provider = _agent(bad, bad)
    with pytest.raises(GenerationExhaustedError):
        await agent.evaluate(ENTRY)
    assert len(provider.prompts) == 2


def test_prompt_includes_mcq_and_template():
    prompt = build_evaluation_prompt(ENTRY, "INSTRUCTION TEXT")
    assert "- Correct Answer: C" in prompt
    assert "Both 1 and 2" in prompt
    assert "- Expected Options Template: (a) 1 only" in prompt
    assert prompt.endswith("INSTRUCTION TEXT")


def test_prompt_tolerates_missing_structure():
    prompt = build_evaluation_prompt({"mcq": MCQ_DOC}, "I")
    assert "Expected Options Template: Unknown" in prompt


@pytest.mark.parametrize("faults", ["None", "No faults.", "  ", None])
def test_no_fault_markers_count_as_clean(faults):
    assert validate_evaluation_reply({"faults": faults, "modifiedMcq": None}).is_clean


@pytest.mark.parametrize(
    "payload",
    [
        {"faults": 3, "modifiedMcq": None},
        {"faults": "wrong answer", "modifiedMcq": None},
        {"faults": "wrong", "modifiedMcq": {**MCQ_DOC, "question": "not a list"}},
        {"faults": "wrong", "modifiedMcq": {**MCQ_DOC, "options": {"A": "x", "B": "y"}}},
    ],
)
def test_contract_violations(payload):
    with pytest.raises(ContractViolationError):
        validate_evaluation_reply(payload)
