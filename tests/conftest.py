from __future__ import annotations

import json

import pytest
import structlog

from autoflow.storage import SQLiteStore, init_db
from autoflow.workflow.llm import LLMError, LLMResponse


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo CLI logging config so later tests don't log to a closed capture stream."""
    yield
    structlog.reset_defaults()


class FakeBackend:
    """Reasoning backend returning canned content or raising a canned error."""

    provider = "fake"

    def __init__(self, content: str | dict | None = None, error: LLMError | None = None, model: str = "fake-model"):
        if isinstance(content, dict):
            content = json.dumps(content)
        self.content = content
        self.error = error
        self.model = model
        self.prompts: list[str] = []

    async def complete(self, prompt: str, *, model: str | None = None) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content or "", model=model or self.model)

    @property
    def calls(self) -> int:
        return len(self.prompts)


def wire_plan(*actions: str, estimated_time=15, complexity="medium") -> dict:
    return {
        "workflow": [
            {"step": i, "action": a, "params": {}, "description": f"Run {a}"}
            for i, a in enumerate(actions, 1)
        ],
        "estimated_time": estimated_time,
        "complexity": complexity,
    }


@pytest.fixture
def conn(tmp_path):
    c = init_db(str(tmp_path / "test.db"))
    yield c
    c.close()


@pytest.fixture
def store(tmp_path):
    s = SQLiteStore(str(tmp_path / "store.db"))
    yield s
    s.close()


@pytest.fixture
def simple_plan() -> dict:
    return wire_plan("analyze_input", "generate_content", "send_output")
