from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from mcq_engine.agents.base import OracleAgent
from mcq_engine.core.errors import ContractViolationError
from mcq_engine.core.logging import DOMAIN_EVALUATION, get_domain_logger
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.core.settings import settings
from mcq_engine.schemas.mcq import EvaluationResult

logger = get_domain_logger(__name__, DOMAIN_EVALUATION)

INSTRUCTION_KEY = "evaluationAndModification"

DEFAULT_EVALUATION_INSTRUCTION = """
Evaluate the MCQ above as a UPSC examiner.
- Check every statement for factual accuracy.
- Check that the correct answer matches the truth of the statements and that the explanation supports it.
- Check that the options follow the expected options template.
Return only a JSON object:
{"faults": "", "modifiedMcq": null}
when the MCQ has no faults, otherwise
{"faults": "Description of each fault", "modifiedMcq": {"question": ["line 1", "..."], "options": {"A": "...", "B": "...", "C": "...", "D": "..."}, "correctAnswer": "A", "explanation": "..."}}
""".strip()

_NO_FAULT_MARKERS = {"", "none", "no faults", "no faults found", "n/a", "nil"}


def build_evaluation_prompt(entry: dict, instruction: str) -> str:
    mcq = entry.get("mcq") or {}
    structure = entry.get("selected_mcq_structure") or {}
    return (
        "MCQ Details:\n"
        f"- Question: {json.dumps(mcq.get('question') or [], ensure_ascii=False)}\n"
        f"- Options: {json.dumps(mcq.get('options') or {}, ensure_ascii=False)}\n"
        f"- Correct Answer: {mcq.get('correctAnswer') or 'N/A'}\n"
        f"- Explanation: {mcq.get('explanation') or 'N/A'}\n"
        f"- Expected Options Template: {structure.get('options_template') or 'Unknown'}\n\n"
        f"{instruction}"
    )


def validate_evaluation_reply(payload: dict) -> EvaluationResult:
    faults = payload.get("faults")
    if faults is None:
        faults = ""
    if not isinstance(faults, str):
        raise ContractViolationError("'faults' must be a string")
    if faults.strip().lower().rstrip(".") in _NO_FAULT_MARKERS:
        faults = ""
    try:
        result = EvaluationResult.model_validate({"faults": faults.strip(), "modifiedMcq": payload.get("modifiedMcq")})
    except ValidationError as exc:
        raise ContractViolationError(f"Invalid modifiedMcq structure: {exc.errors()[0].get('msg')}") from exc
    if not result.is_clean and result.modified_mcq is None:
        raise ContractViolationError("faults reported without a modifiedMcq")
    return result


class MCQEvaluationAgent(OracleAgent):
    task_name = "MCQ evaluation"

    def __init__(self, oracle: ThreadedOracle, max_attempts: int | None = None):
        super().__init__(oracle, settings.evaluation_max_attempts if max_attempts is None else max_attempts, logger)

    async def evaluate(
        self,
        entry: dict,
        instruction: str | None = None,
        thread_id: str | None = None,
    ) -> EvaluationResult:
        prompt = build_evaluation_prompt(entry, instruction or DEFAULT_EVALUATION_INSTRUCTION)
        result = await self._exchange(thread_id, prompt, validate_evaluation_reply)
        if result.is_clean:
            logger.info("MCQ %s evaluated with no faults", entry.get("id"))
        else:
            logger.info("MCQ %s faults: %s", entry.get("id"), result.faults)
        return result

    async def run(self, input_data: dict[str, Any]) -> dict[str, Any]:
        result = await self.evaluate(input_data["entry"], input_data.get("instruction"))
        return result.model_dump(by_alias=True)
