"""
Statement Generation Agent: asks the oracle for four true/false statements about a node
with an exact number of false ones, and rejects any reply that does not match.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from mcq_engine.agents.base import OracleAgent
from mcq_engine.core.errors import ContractViolationError
from mcq_engine.core.logging import DOMAIN_GENERATION, get_domain_logger
from mcq_engine.core.oracle import ThreadedOracle
from mcq_engine.core.settings import settings
from mcq_engine.schemas.mcq import STATEMENTS_PER_BATCH, StatementBatch, TopicContext

logger = get_domain_logger(__name__, DOMAIN_GENERATION)


def build_statement_prompt(context: TopicContext, false_count: int) -> str:
    true_count = STATEMENTS_PER_BATCH - false_count
    if false_count == 0:
        assignments = "- All statements (1-4): True (correct fact)"
    else:
        lines = [f"- Statement {i}: False (incorrect fact)" for i in range(1, false_count + 1)]
        lines += [f"- Statement {i}: True (correct fact)" for i in range(false_count + 1, STATEMENTS_PER_BATCH + 1)]
        assignments = "\n".join(lines)

    return f"""
You generate fact-based statements for UPSC-style questions on the subject "{context.category}".
Generate statements STRICTLY for "{context.category}", chapter "{context.chapter}" and node "{context.node}" from your own knowledge.

Instructions:
- Generate EXACTLY {STATEMENTS_PER_BATCH} STATEMENTS with EXACTLY {false_count} FALSE STATEMENTS and {true_count} TRUE STATEMENTS:
{assignments}
- MUST HAVE EXACTLY {false_count} FALSE STATEMENTS. NO DEVIATION ALLOWED.
- TRUE STATEMENTS: precise and fact-based, requiring specific details (constitutional provisions, historical events, dates).
- FALSE STATEMENTS: subtle and plausible, built on specific misconceptions or slight factual distortions (wrong dates, misattributed roles). Do not use absolute terms like "always", "never" or "completely".
- EACH STATEMENT: include a concise reason starting with "Correct:" for true statements or "Incorrect:" for false ones.
- Do not include a "source" field.

Output format:
{{
  "statements": [
    {{"text": "Statement text", "isTrue": true, "reason": "Correct: why it is true"}},
    {{"text": "Statement text", "isTrue": false, "reason": "Incorrect: why it is false"}}
  ]
}}
Return ONLY the JSON object. ENSURE EXACTLY {false_count} FALSE STATEMENTS.
""".strip()


def validate_statement_reply(payload: dict, false_count: int) -> StatementBatch:
    statements = payload.get("statements")
    if not isinstance(statements, list) or len(statements) != STATEMENTS_PER_BATCH:
        raise ContractViolationError(f"Invalid response format: expected {STATEMENTS_PER_BATCH} statements")
    try:
        batch = StatementBatch.model_validate({"statements": statements})
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise ContractViolationError(f"Invalid statement at {where}: {first.get('msg')}") from exc
    if batch.false_count != false_count:
        raise ContractViolationError(f"Expected {false_count} false statements, got {batch.false_count}")
    return batch


class StatementGenerationAgent(OracleAgent):
    task_name = "statement generation"

    def __init__(self, oracle: ThreadedOracle, max_attempts: int | None = None):
        super().__init__(oracle, settings.statement_max_attempts if max_attempts is None else max_attempts, logger)

    async def generate(self, context: TopicContext, false_count: int) -> StatementBatch:
        if isinstance(false_count, bool) or not isinstance(false_count, int) or not 0 <= false_count <= STATEMENTS_PER_BATCH:
            raise ValueError(f"false_count must be between 0 and {STATEMENTS_PER_BATCH}, got {false_count!r}")
        prompt = build_statement_prompt(context, false_count)
        logger.info(
            "Generating statements category=%s chapter=%s node=%s false_count=%d",
            context.category, context.chapter, context.node, false_count,
        )
        return await self._exchange(context.thread_id, prompt, lambda payload: validate_statement_reply(payload, false_count))

    async def run(self, input_data: dict[str, Any]) -> dict[str, Any]:
        context = TopicContext(
            category=input_data["category"],
            chapter=input_data["chapter"],
            node=input_data["node"],
            thread_id=input_data.get("thread_id"),
        )
        false_count = input_data["false_count"]
        batch = await self.generate(context, false_count)
        return {
            "category": context.category,
            "chapter": context.chapter,
            "node": context.node,
            "falseCount": false_count,
            "statements": [s.model_dump(by_alias=True) for s in batch.statements],
        }
