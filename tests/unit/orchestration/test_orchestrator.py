"""Tests for WorkflowOrchestrator"""
import logging
from unittest.mock import Mock

import pytest

from forge.config.schema import WorkflowConfig
from forge.engines.decision import RoutingDecision, WorkflowDecision
from forge.llm.client import BackendHTTPError
from forge.orchestration.models import (
    ExecutionResult,
    ReviewResult,
    WorkflowContext,
    WorkflowState,
    WorkflowStatus,
)
from forge.orchestration.orchestrator import WorkflowOrchestrator, execute_workflow
from forge.orchestration.state_machine import StateMachine
from forge.storage.store import AGENT_MEMORIES, MEMORIES

BUTTON_PROMPT = "Create a button with a hover effect"


def _orchestrator(config, client, sleeps, **kwargs):
    return WorkflowOrchestrator(config, llm_client=client, sleep=sleeps.sleep, **kwargs)


@pytest.mark.asyncio
async def test_tutor_greeting_skips_planner(config, fake_llm, sleeps):
    """Simple tutor request: no plan, one execution, one review."""
    statuses = []
    states = []
    context = WorkflowContext(
        prompt="hi",
        mode="tutor",
        on_status_update=lambda status, message: statuses.append(status),
        on_state_change=lambda state, details: states.append(state),
    )
    orchestrator = _orchestrator(config, fake_llm, sleeps)

    result = await orchestrator.execute_workflow(context)
    await orchestrator.drain()

    assert not result.is_error
    assert result.plan is None
    assert result.response == result.explanation
    assert result.code is None
    assert result.metadata.stages_executed == [
        "normalize", "intent_analyze", "user_profile", "context_awareness", "decision", "execute", "review",
    ]
    assert result.metadata.quality_score == 0.9
    assert result.metadata.stop_reason == "accepted"
    assert result.metadata.tokens_used == 10
    assert len(fake_llm.calls_for("planner")) == 0
    assert len(fake_llm.calls_for("executor")) == 1
    assert len(fake_llm.calls_for("reviewer")) == 1
    assert states == [WorkflowState.IDLE, WorkflowState.EXECUTING, WorkflowState.REVIEWING, WorkflowState.DONE]
    assert statuses == [
        WorkflowStatus.PREPROCESSING,
        WorkflowStatus.ROUTING,
        WorkflowStatus.EXECUTING,
        WorkflowStatus.REVIEWING,
        WorkflowStatus.SAVING,
        WorkflowStatus.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_builder_revises_after_low_score(config, make_llm, sleeps):
    """Rejected first draft is revised once with feedback, then accepted."""
    client = make_llm(reviewer=["Too plain.\nQuality Score: 0.4", "Much better.\nQuality Score: 0.9"])
    orchestrator = _orchestrator(config, client, sleeps)

    result = await orchestrator.execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT))

    assert result.plan is not None
    assert "plan" in result.metadata.stages_executed
    assert result.metadata.execution_attempts == 1
    assert result.metadata.revision_attempts == 1
    assert result.metadata.stop_reason == "accepted"
    assert result.metadata.quality_score == 0.9
    assert result.metadata.tokens_used == 20

    executions = client.calls_for("executor")
    assert len(executions) == 2
    assert "REVISION FEEDBACK" not in executions[0]["prompt"]
    assert "[REVISION FEEDBACK - Attempt 1]" in executions[1]["prompt"]
    assert "Quality score too low (0.4)" in executions[1]["prompt"]
    assert executions[0]["prompt"].startswith("Execute the following plan:")


@pytest.mark.asyncio
async def test_circuit_breaker_caps_total_attempts(make_llm, sleeps):
    config = WorkflowConfig.model_validate(
        {"retry": {"retry_delay": 0, "revision_delay": 0, "max_revisions": 50}}
    )
    client = make_llm(reviewer=["REJECT: still wrong\nQuality Score: 0.3"])

    result = await _orchestrator(config, client, sleeps).execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT))

    assert len(client.calls_for("executor")) == 10
    assert result.metadata.stop_reason == "circuit_breaker"
    assert result.metadata.final_state == WorkflowState.DONE
    assert result.metadata.quality_score == 0.3


@pytest.mark.asyncio
async def test_revision_budget_keeps_last_result(config, make_llm, sleeps):
    client = make_llm(reviewer=["REJECT: wrong colors\nQuality Score: 0.5"])

    result = await _orchestrator(config, client, sleeps).execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT))

    assert len(client.calls_for("executor")) == 2
    assert result.metadata.stop_reason == "revision_budget"
    assert result.metadata.revision_attempts == 2
    assert result.review.rejected


@pytest.mark.asyncio
async def test_failed_build_is_retried(config, make_llm, sleeps):
    client = make_llm(executor=[BackendHTTPError(400, "bad"), '<button class="btn">Go</button>'])

    result = await _orchestrator(config, client, sleeps).execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT))

    assert result.code == '<button class="btn">Go</button>'
    assert result.metadata.execution_attempts == 2
    assert result.metadata.error_message is None
    assert sleeps[0] == 0


def test_reviewer_improvement_policy(config, fake_llm, sleeps):
    orchestrator = _orchestrator(config, fake_llm, sleeps)
    improved = ReviewResult(quality_score=0.65, improved_code="<button aria-label=\"go\">Go</button>")

    below = ExecutionResult(code="<button>Go</button>")
    orchestrator._apply_improved(below, improved, 0.7)
    above = ExecutionResult(code="<button>Go</button>")
    orchestrator._apply_improved(above, improved, 0.6)
    tutor = ExecutionResult(explanation="short")
    orchestrator._apply_improved(tutor, ReviewResult(quality_score=0.5, improved_explanation="longer"), 0.7)

    assert below.code == "<button aria-label=\"go\">Go</button>"
    assert above.code == "<button>Go</button>"
    assert tutor.explanation == "longer"


@pytest.mark.asyncio
async def test_review_failure_accepts_unreviewed(config, make_llm, sleeps):
    client = make_llm(reviewer=[BackendHTTPError(401)])

    result = await _orchestrator(config, client, sleeps).execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT))

    assert not result.is_error
    assert result.metadata.stop_reason == "review_failed"
    assert result.review is None
    assert "review" not in result.metadata.stages_executed
    assert result.code == '<button class="btn">Click me</button>'


@pytest.mark.asyncio
async def test_fatal_error_returns_error_result(config, sleeps):
    factory = Mock()
    factory.create_team.side_effect = RuntimeError("boom")
    statuses = []
    context = WorkflowContext(prompt=BUTTON_PROMPT, on_status_update=lambda s, m: statuses.append(s))

    result = await _orchestrator(config, None, sleeps, agent_factory=factory).execute_workflow(context)

    assert result.is_error
    assert result.response.startswith("// Error: boom")
    assert "Stages completed: normalize, intent_analyze, user_profile, context_awareness, decision" in result.response
    assert result.metadata.error_message == "boom"
    assert statuses[-1] == WorkflowStatus.ERROR


@pytest.mark.asyncio
async def test_fatal_error_in_tutor_mode(config, sleeps):
    factory = Mock()
    factory.create_team.side_effect = RuntimeError("boom")

    result = await _orchestrator(config, None, sleeps, agent_factory=factory).execute_workflow(
        WorkflowContext(prompt="what is a closure", mode="tutor")
    )

    assert result.is_error
    assert result.code is None
    assert result.explanation == result.response
    assert "boom" in result.response


@pytest.mark.asyncio
async def test_memory_and_reflection_saved(config, fake_llm, sleeps):
    orchestrator = _orchestrator(config, fake_llm, sleeps)

    await orchestrator.execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT, user_id="u1"))
    await orchestrator.drain()

    memories = await orchestrator.store.query(MEMORIES, filters={"user_id": "u1"})
    reflections = await orchestrator.store.query(AGENT_MEMORIES, filters={"user_id": "u1"})
    assert len(memories) == 1
    assert memories[0]["prompt"] == BUTTON_PROMPT
    assert len(reflections) == 1
    assert reflections[0]["lessons_learned"] == ["Short prompts still benefit from review"]

    await orchestrator.execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT, user_id="u1"))
    second_executor_call = fake_llm.calls_for("executor")[-1]
    assert "=== RELEVANT PAST INTERACTIONS ===" in second_executor_call["system"]
    assert "=== CONTEXT AWARENESS ===" in second_executor_call["system"]


@pytest.mark.asyncio
async def test_no_store_skips_reflection(config, fake_llm, sleeps):
    orchestrator = _orchestrator(config, fake_llm, sleeps, store=None)

    result = await orchestrator.execute_workflow(WorkflowContext(prompt=BUTTON_PROMPT, user_id="u1"))
    await orchestrator.drain()

    assert not result.is_error
    assert fake_llm.calls_for("reflection") == []


@pytest.mark.asyncio
async def test_failing_status_callback_is_ignored(config, fake_llm, sleeps):
    def broken(status, message):
        raise RuntimeError("ui went away")

    result = await _orchestrator(config, fake_llm, sleeps).execute_workflow(
        WorkflowContext(prompt="hi", on_status_update=broken)
    )

    assert not result.is_error


@pytest.mark.asyncio
async def test_module_level_execute_workflow(config, fake_llm):
    result = await execute_workflow(WorkflowContext(prompt="hi", mode="tutor"), config, llm_client=fake_llm)

    assert result.metadata.final_state == WorkflowState.DONE


def test_missing_client_raises(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    config = WorkflowConfig.model_validate({"backend": {"provider": "anthropic"}})

    with pytest.raises(ValueError):
        WorkflowOrchestrator(config)


@pytest.mark.asyncio
async def test_loop_with_no_attempt_budget_raises(config, fake_llm, sleeps):
    orchestrator = _orchestrator(config, fake_llm, sleeps)
    routing = RoutingDecision(planner="groq", executor="groq", reviewer="groq", reflection="groq")
    decision = WorkflowDecision(
        routing=routing,
        skip_stages=frozenset(),
        quality_threshold=0.7,
        max_retries=-1,
        max_revisions=1,
        priority="normal",
        complexity="simple",
    )

    with pytest.raises(RuntimeError, match="retry_budget"):
        await orchestrator._execute_loop(
            WorkflowContext(prompt="hi"),
            StateMachine(),
            orchestrator.agent_factory.create_team(routing),
            decision,
            None,
            None,
            None,
            [],
        )

    assert fake_llm.calls_for("executor") == []


@pytest.mark.asyncio
async def test_requested_provider_is_logged(config, fake_llm, sleeps, caplog):
    caplog.set_level(logging.INFO, logger="forge.orchestration.orchestrator")

    await _orchestrator(config, fake_llm, sleeps).execute_workflow(
        WorkflowContext(prompt="hi", mode="tutor", provider="gemini", session_id="s1")
    )

    assert "Workflow s1 started: mode=tutor provider=gemini" in caplog.text
