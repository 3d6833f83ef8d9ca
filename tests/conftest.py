from __future__ import annotations

import json
import os
import random
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no external LLM traffic
# - file store under a throwaway directory
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LLM_PROVIDER", "none")
os.environ.setdefault("STORE_BACKEND", "file")
os.environ.setdefault("RUNTIME_DATA_DIR", tempfile.mkdtemp(prefix="mcq_engine_test_"))
os.environ.setdefault("BATCH_ITEM_DELAY_SECONDS", "0")

from mcq_engine.content.transformer import StatementTransformer  # noqa: E402
from mcq_engine.core.llm_provider import BaseLLMProvider  # noqa: E402
from mcq_engine.main import app  # noqa: E402
from mcq_engine.memory.store import FileContentStore  # noqa: E402
from mcq_engine.runtime.container import build_services, get_services  # noqa: E402

SAMPLE_TREE = {
    "topics": [
        {
            "topic": "Fundamental Rights",
            "subtopics": [
                {
                    "subtopic": "Right to Equality",
                    "details": [
                        {
                            "detail": "Article 14",
                            "subdetails": [
                                {
                                    "subdetail": "Equality Before Law",
                                    "particulars": ["Article 14 ensures equal protection of laws"],
                                }
                            ],
                        }
                    ],
                }
            ],
        }
    ],
    "note": "Generated content: Fundamental Rights articles",
}


def statements_reply(false_count: int) -> str:
    statements = []
    for i in range(4):
        is_true = i >= false_count
        statements.append({
            "text": f"Statement number {i + 1} about equality",
            "isTrue": is_true,
            "reason": ("Correct: " if is_true else "Incorrect: ") + f"reason {i + 1}",
        })
    return json.dumps({"statements": statements})


class ScriptedProvider(BaseLLMProvider):
    """Replays canned oracle replies in order; an Exception entry is raised instead."""

    provider_name = "scripted"

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.prompts: list[str] = []

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    async def generate(self, prompt: str) -> tuple[str | None, dict]:
        self.prompts.append(prompt)
        if not self.replies:
            return None, {"provider": self.provider_name, "reason": "script_exhausted"}
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply, {"provider": self.provider_name}


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def store(tmp_path: Path) -> FileContentStore:
    return FileContentStore(tmp_path / "store")


@pytest.fixture
def services(store, provider):
    return build_services(
        store=store,
        provider=provider,
        transformer=StatementTransformer(rng=random.Random(7)),
        item_delay_seconds=0,
    )


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as tc:
        yield tc
    app.dependency_overrides.clear()
