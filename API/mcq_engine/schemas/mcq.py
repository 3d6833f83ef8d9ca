from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

OptionLetter = Literal["A", "B", "C", "D"]
OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")
STATEMENTS_PER_BATCH = 4


class Statement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    is_true: StrictBool = Field(alias="isTrue")
    reason: str = Field(min_length=1)

    @field_validator("text", "reason")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class StatementBatch(BaseModel):
    statements: list[Statement]

    @property
    def false_count(self) -> int:
        return sum(1 for s in self.statements if not s.is_true)


class TopicContext(BaseModel):
    """Where a statement batch comes from: a category, one of its chapters and a node label."""

    category: str
    chapter: str
    node: str
    thread_id: str | None = None


class MCQ(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question: list[str] = Field(min_length=1)
    options: dict[OptionLetter, str]
    correct_answer: OptionLetter = Field(alias="correctAnswer")
    explanation: str

    @field_validator("options")
    @classmethod
    def _four_options(cls, value: dict[str, str]) -> dict[str, str]:
        if set(value) != set(OPTION_LETTERS):
            raise ValueError("options must have exactly the keys A, B, C and D")
        return {letter: value[letter] for letter in OPTION_LETTERS}

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class TransformedMCQ(BaseModel):
    mcq: MCQ
    structure: str
    phrase: str
    selected_count: int
    fallback: str | None = None


class EvaluationResult(BaseModel):
    faults: str = ""
    modified_mcq: MCQ | None = Field(default=None, alias="modifiedMcq")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_clean(self) -> bool:
        return not self.faults.strip()
