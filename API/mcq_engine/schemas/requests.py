from __future__ import annotations

from pydantic import BaseModel, Field

from mcq_engine.schemas.mcq import MCQ, Statement


class GenerateMappingRequest(BaseModel):
    category: str = Field(min_length=1)
    chapter: str = Field(min_length=1)


class StatementRequest(BaseModel):
    category: str = Field(min_length=1)
    chapter: str = Field(min_length=1)
    node: str | None = None
    false_count: int | None = Field(default=None, ge=0, le=4, alias="falseCount")

    model_config = {"populate_by_name": True}


class TransformRequest(BaseModel):
    statements: list[Statement]
    category: str | None = None
    chapter: str | None = None
    store: bool = True


class SaveMCQRequest(BaseModel):
    mcq: MCQ
    category: str | None = None
    chapter: str | None = None


class InstructionRequest(BaseModel):
    instruction: str = Field(min_length=1)
