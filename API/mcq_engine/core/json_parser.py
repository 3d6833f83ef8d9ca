from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing oracle text: either ``value`` or ``error`` is set."""

    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _strip_fences(text: str) -> str:
    candidate = _FENCE_START.sub("", text.strip())
    return _FENCE_END.sub("", candidate).strip()


def parse_llm_json(text: str | None) -> ParseResult:
    if not text or not text.strip():
        return ParseResult(error="empty response")
    candidate = _strip_fences(text)
    try:
        return ParseResult(value=json.loads(candidate))
    except ValueError:
        pass

    # Extract the outermost JSON object if the model wrapped content in prose.
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        return ParseResult(error="no JSON object found in response")
    try:
        return ParseResult(value=json.loads(candidate[start:end + 1]))
    except ValueError as exc:
        return ParseResult(error=f"invalid JSON: {exc}")


def parse_llm_object(text: str | None) -> ParseResult:
    """Like ``parse_llm_json`` but only accepts a top-level JSON object."""
    result = parse_llm_json(text)
    if result.ok and not isinstance(result.value, dict):
        return ParseResult(error=f"expected a JSON object, got {type(result.value).__name__}")
    return result
