"""Pytest configuration and fixtures."""

import asyncio
import json

import pytest

from forge.config.manager import ConfigManager
from forge.config.schema import WorkflowConfig
from forge.llm.client import LLMClient, LLMResponse
from forge.llm.retry import ResilientLLM, RetryPolicy
from forge.output import formatter as formatter_module

DEFAULT_PLAN = json.dumps(
    {
        "tasks": [
            {
                "id": "1",
                "title": "Build markup",
                "description": "Write the HTML structure",
                "dependencies": [],
                "priority": "high",
                "category": "component",
            },
            {
                "id": "2",
                "title": "Add styles",
                "description": "Style the component",
                "dependencies": ["1"],
                "priority": "medium",
                "category": "styling",
            },
        ]
    }
)
DEFAULT_CODE = '<button class="btn">Click me</button>'
DEFAULT_REVIEW = "The code is clean and complete.\nQuality Score: 0.9"
DEFAULT_REFLECTION = """WHAT WORKED
- The plan covered every requirement
WHAT FAILED
- Nothing failed during this run
WHAT TO IMPROVE
- Add more accessibility attributes
LESSONS LEARNED
- Short prompts still benefit from review
RECOMMENDATIONS
- Keep reviewing simple builds"""

ROLE_PREFIXES = (
    ("planner", "Create a detailed execution plan"),
    ("reviewer", "Review the following"),
    ("reflection", "Analyze this workflow execution"),
)


class FakeLLMClient(LLMClient):
    """Scripted backend that answers by agent role.

    Each role gets a list of responses consumed in order; the last one
    repeats. Exception items are raised instead of returned. A ``delay``
    makes every call sleep first, for exercising stage timeouts.
    """

    def __init__(self, planner=None, executor=None, reviewer=None, reflection=None, tokens: int = 10, delay: float = 0.0):
        self.responses = {
            "planner": list(planner or [DEFAULT_PLAN]),
            "executor": list(executor or [DEFAULT_CODE]),
            "reviewer": list(reviewer or [DEFAULT_REVIEW]),
            "reflection": list(reflection or [DEFAULT_REFLECTION]),
        }
        self.tokens = tokens
        self.delay = delay
        self.calls: list[dict] = []

    @staticmethod
    def role_for(prompt: str) -> str:
        for role, prefix in ROLE_PREFIXES:
            if prompt.startswith(prefix):
                return role
        return "executor"

    def calls_for(self, role: str) -> list[dict]:
        return [c for c in self.calls if c["role"] == role]

    async def complete(
        self,
        prompt,
        model,
        system=None,
        history=None,
        images=None,
        mode="builder",
        max_tokens=4096,
    ) -> LLMResponse:
        role = self.role_for(prompt)
        self.calls.append(
            {"role": role, "prompt": prompt, "model": model, "system": system, "history": history, "images": images, "mode": mode}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        queue = self.responses[role]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return LLMResponse(content=item, model=model, tokens_used=self.tokens)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config and memory files out of the real home directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    ConfigManager.reset()
    formatter_module.reset_formatter()
    yield tmp_path
    ConfigManager.reset()
    formatter_module.reset_formatter()


@pytest.fixture
def config():
    """Default config without retry/revision delays."""
    return WorkflowConfig.model_validate({"retry": {"retry_delay": 0, "revision_delay": 0}})


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def sleeps():
    """Recorded sleep calls; pass ``sleeps.sleep`` wherever a sleep is injected."""

    class Recorder(list):
        async def sleep(self, seconds: float) -> None:
            self.append(seconds)

    return Recorder()


@pytest.fixture
def make_llm():
    """Factory for scripted backends: ``make_llm(reviewer=[...])``."""
    return FakeLLMClient


@pytest.fixture
def llm(fake_llm, sleeps):
    """Retrying wrapper around ``fake_llm`` that never really sleeps."""
    return ResilientLLM(fake_llm, RetryPolicy(), sleep=sleeps.sleep)
