"""
Statement batch -> combination MCQ.

Each call shows a random 2, 3 or 4 of the batch's statements in random order, works
out which display positions are true, and picks a combination layout whose options
contain that phrase. The correct letter is the phrase's slot in the layout.
"""
from __future__ import annotations

import random
import re

from pydantic import ValidationError

from mcq_engine.content.catalog import (
    COMBINATION_TEMPLATES,
    combination_phrase,
    synthesize_combination_template,
    templates_with_phrase,
)
from mcq_engine.core.errors import InvalidBatchError
from mcq_engine.core.logging import DOMAIN_TRANSFORM, get_domain_logger
from mcq_engine.core.settings import settings
from mcq_engine.schemas.mcq import MCQ, OPTION_LETTERS, STATEMENTS_PER_BATCH, Statement, StatementBatch, TransformedMCQ

logger = get_domain_logger(__name__, DOMAIN_TRANSFORM)

QUESTION_INTRO = "Consider the following statements:"
QUESTION_CLOSING = "Which of the following is correct?"
_VERDICT_PREFIX = re.compile(r"^\s*(?:correct|incorrect)\s*:\s*", re.IGNORECASE)


def strip_verdict(reason: str) -> str:
    return _VERDICT_PREFIX.sub("", reason or "").strip()


def _coerce_statements(batch) -> list[Statement]:
    raw = batch.statements if isinstance(batch, StatementBatch) else batch
    if isinstance(raw, dict):
        raw = raw.get("statements")
    if not isinstance(raw, (list, tuple)):
        raise InvalidBatchError("statement batch must contain a list of statements")
    try:
        return [s if isinstance(s, Statement) else Statement.model_validate(s) for s in raw]
    except ValidationError as exc:
        raise InvalidBatchError(f"malformed statement: {exc.errors()[0].get('msg')}") from exc


class StatementTransformer:
    def __init__(self, rng: random.Random | None = None, legacy_fallback: bool | None = None):
        self.rng = rng or random.Random()
        self.legacy_fallback = settings.transformer_legacy_fallback if legacy_fallback is None else legacy_fallback

    def transform(self, batch) -> TransformedMCQ:
        statements = _coerce_statements(batch)
        if len(statements) != STATEMENTS_PER_BATCH:
            raise InvalidBatchError(f"expected {STATEMENTS_PER_BATCH} statements, got {len(statements)}")

        k = self.rng.choice(sorted(COMBINATION_TEMPLATES))
        shuffled = self.rng.sample(statements, len(statements))
        positions = sorted(self.rng.sample(range(len(shuffled)), len(shuffled))[:k])
        return self.build_from_selection([shuffled[i] for i in positions])

    def build_from_selection(self, statements) -> TransformedMCQ:
        """Render an MCQ from statements already chosen and ordered for display."""
        selected = _coerce_statements(statements)
        k = len(selected)
        if k not in COMBINATION_TEMPLATES:
            raise InvalidBatchError(f"cannot build a combination question from {k} statements")

        true_positions = [n for n, s in enumerate(selected, start=1) if s.is_true]
        phrase = combination_phrase(true_positions, k)
        template, phrase, fallback = self._choose_template(k, phrase)

        options = dict(zip(OPTION_LETTERS, template["options"]))
        try:
            correct = OPTION_LETTERS[list(template["options"]).index(phrase)]
        except ValueError:
            logger.error("Phrase %r missing from template %s, defaulting to A", phrase, template["name"])
            correct = "A"

        question = [QUESTION_INTRO]
        question.extend(f"{n}. {s.text.strip()}" for n, s in enumerate(selected, start=1))
        question.append(QUESTION_CLOSING)
        explanation = " ".join(
            f"Statement {n} is {'correct' if s.is_true else 'incorrect'}: {strip_verdict(s.reason)}"
            for n, s in enumerate(selected, start=1)
        )

        mcq = MCQ(question=question, options=options, correct_answer=correct, explanation=explanation)
        logger.info("Transformed %d statements with %s, answer %s (%s)", k, template["name"], correct, phrase)
        return TransformedMCQ(mcq=mcq, structure=template["name"], phrase=phrase, selected_count=k, fallback=fallback)

    def _choose_template(self, k: int, phrase: str):
        matching = templates_with_phrase(k, phrase)
        if matching:
            return self.rng.choice(matching), phrase, None
        if self.legacy_fallback:
            template = COMBINATION_TEMPLATES[k][0]
            logger.warning(
                "No template for %r with %d statements; using %s and answering %r instead",
                phrase, k, template["name"], template["options"][0],
            )
            return template, template["options"][0], "legacy_override"
        logger.warning("No template for %r with %d statements; synthesizing one", phrase, k)
        return synthesize_combination_template(k, phrase, self.rng), phrase, "synthesized"
