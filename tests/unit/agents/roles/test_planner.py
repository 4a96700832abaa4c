"""Tests for PlannerAgent"""
import pytest

from forge.agents.roles.planner import PlannerAgent
from forge.llm.client import BackendHTTPError
from forge.llm.retry import ResilientLLM
from forge.orchestration.models import PlanTask, PreprocessedInput, WorkflowContext

PREPROCESSED = PreprocessedInput(
    cleaned_prompt="Create a button with a hover effect",
    intent="code_generation",
    framework="react",
    metadata={"style": "modern", "components": ["button"]},
)


def _planner(client, sleeps, timeout=None):
    return PlannerAgent("groq", ResilientLLM(client, sleep=sleeps.sleep), timeout=timeout)


def test_planner_agent_metadata(llm):
    agent = PlannerAgent("groq", llm)
    assert agent.role_name == "planner"
    assert "plan" in agent.goal.lower()
    assert repr(agent) == "PlannerAgent(model='groq')"


@pytest.mark.asyncio
async def test_planner_returns_structured_plan(fake_llm, sleeps):
    context = WorkflowContext(prompt="Create a button with a hover effect")

    plan = await _planner(fake_llm, sleeps).run(context, context.prompt, PREPROCESSED)

    assert not plan.is_fallback
    assert [t.title for t in plan.tasks] == ["Build markup", "Add styles"]
    assert plan.execution_steps[0].action == "Write the HTML structure"
    assert plan.execution_steps[1].dependencies == [1]
    assert "Follows react framework conventions" in plan.quality_criteria
    assert "Follows modern design style" in plan.quality_criteria
    assert "Verify framework-specific best practices" in plan.review_checklist

    call = fake_llm.calls[0]
    assert call["mode"] == "tutor"
    assert "Framework: react" in call["prompt"]
    assert "Required Components: button" in call["prompt"]


@pytest.mark.asyncio
async def test_unparseable_plan_falls_back(make_llm, sleeps):
    plan = await _planner(make_llm(planner=["I'd rather chat"]), sleeps).run(
        WorkflowContext(prompt="x"), "x", PREPROCESSED
    )

    assert plan.is_fallback
    assert [t.id for t in plan.tasks] == ["1", "2"]
    assert plan.tasks[1].category == "component"
    assert plan.execution_steps[1].dependencies == [1]


@pytest.mark.asyncio
async def test_backend_failure_falls_back(make_llm, sleeps):
    plan = await _planner(make_llm(planner=[BackendHTTPError(400, "bad request")]), sleeps).run(
        WorkflowContext(prompt="x"), "x", PREPROCESSED
    )

    assert plan.is_fallback


@pytest.mark.asyncio
async def test_timeout_falls_back(make_llm, sleeps):
    plan = await _planner(make_llm(delay=1.0), sleeps, timeout=0.01).run(
        WorkflowContext(prompt="x"), "x", PREPROCESSED
    )

    assert plan.is_fallback


def test_execution_steps_drop_unknown_dependencies():
    tasks = [
        PlanTask(id="a", title="First"),
        PlanTask(id="b", title="Second", dependencies=["a", "zzz"]),
    ]

    steps = PlannerAgent.execution_steps(tasks)

    assert steps[1].dependencies == [1]
    assert steps[0].action == "First"
    assert steps[0].expected_output == "Complete first"


def test_html_framework_adds_no_framework_criteria():
    preprocessed = PreprocessedInput(cleaned_prompt="x", intent="code_generation", framework="html")

    assert len(PlannerAgent.quality_criteria(preprocessed)) == 5
    assert len(PlannerAgent.review_checklist(preprocessed)) == 5
