"""Tests for ExecutorAgent"""
import json

import pytest

from forge.agents.base import REVISION_FEEDBACK_KEY
from forge.agents.roles.executor import BUILDER_ERROR_CODE, TUTOR_ERROR_EXPLANATION, ExecutorAgent
from forge.llm.client import BackendHTTPError
from forge.llm.retry import ResilientLLM
from forge.orchestration.models import EnhancedPlan, ExecutionStep, Message, WorkflowContext


def _executor(client, sleeps, timeout=None):
    return ExecutorAgent("groq", ResilientLLM(client, sleep=sleeps.sleep), timeout=timeout)


def test_executor_agent_metadata(llm):
    agent = ExecutorAgent("groq", llm)
    assert agent.role_name == "executor"
    assert "implement" in agent.goal.lower()


@pytest.mark.asyncio
async def test_builder_produces_code(fake_llm, sleeps):
    context = WorkflowContext(
        prompt="make a button",
        history=[Message(role="user", content="hi"), Message(role="ai", content="hello")],
        images=["data:image/png;base64,AAA"],
    )

    result = await _executor(fake_llm, sleeps).run(context)

    assert result.code == '<button class="btn">Click me</button>'
    assert result.explanation is None
    assert result.metadata.tokens_used == 10
    assert not result.failed

    call = fake_llm.calls[0]
    assert call["prompt"] == "make a button"
    assert call["mode"] == "builder"
    assert call["history"] == [{"role": "user", "content": "hi"}, {"role": "ai", "content": "hello"}]
    assert call["images"] == ["data:image/png;base64,AAA"]


@pytest.mark.asyncio
async def test_tutor_produces_explanation(make_llm, sleeps):
    client = make_llm(executor=["A closure keeps access to its enclosing scope."])

    result = await _executor(client, sleeps).run(WorkflowContext(prompt="what is a closure", mode="tutor"))

    assert result.explanation == "A closure keeps access to its enclosing scope."
    assert result.code is None
    assert client.calls[0]["mode"] == "tutor"


@pytest.mark.asyncio
async def test_multi_file_artifact(make_llm, sleeps):
    payload = json.dumps({
        "type": "multi-file",
        "entry": "App.jsx",
        "files": [{"path": "App.jsx", "content": "export default App"}, {"path": "app.css", "content": ".a{}"}],
    })

    result = await _executor(make_llm(executor=[payload]), sleeps).run(WorkflowContext(prompt="make an app"))

    assert result.code == "export default App"
    assert result.entry == "App.jsx"
    assert len(result.files) == 2


@pytest.mark.asyncio
async def test_plan_and_revision_feedback_in_prompt(fake_llm, sleeps):
    plan = EnhancedPlan(
        id="p1",
        prompt="make a card",
        execution_steps=[ExecutionStep(1, "Write markup", "Card markup")],
        quality_criteria=["Accessible"],
    )
    context = WorkflowContext(prompt="make a card", metadata={REVISION_FEEDBACK_KEY: "[REVISION FEEDBACK - Attempt 1]"})

    await _executor(fake_llm, sleeps).run(context, plan)

    prompt = fake_llm.calls[0]["prompt"]
    assert prompt.startswith("Execute the following plan:")
    assert "Original Request: make a card" in prompt
    assert "1. Write markup" in prompt
    assert "   Expected: Card markup" in prompt
    assert "1. Accessible" in prompt
    assert prompt.endswith("[REVISION FEEDBACK - Attempt 1]")


@pytest.mark.asyncio
async def test_backend_error_gives_error_artifact(make_llm, sleeps):
    client = make_llm(executor=[BackendHTTPError(400, "bad")])

    builder = await _executor(client, sleeps).run(WorkflowContext(prompt="x"))
    tutor = await _executor(client, sleeps).run(WorkflowContext(prompt="x", mode="tutor"))

    assert builder.code == BUILDER_ERROR_CODE
    assert builder.failed
    assert builder.metadata.quality_score == 0.0
    assert tutor.explanation == TUTOR_ERROR_EXPLANATION
    assert tutor.code is None


@pytest.mark.asyncio
async def test_timeout_gives_error_artifact(make_llm, sleeps):
    result = await _executor(make_llm(delay=1.0), sleeps, timeout=0.01).run(WorkflowContext(prompt="x"))

    assert result.failed
    assert "Timed out" in result.error
