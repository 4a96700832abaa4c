"""Tests for orchestration data models"""
from datetime import datetime

from forge.orchestration.models import (
    AgentMemoryEntry,
    EnhancedPlan,
    ExecutionResult,
    GeneratedFile,
    MemoryEntry,
    Message,
    PlanTask,
    ReviewIssue,
    ReviewResult,
    WorkflowContext,
    WorkflowMetadata,
    WorkflowResult,
    WorkflowState,
)


def test_workflow_context_defaults():
    context = WorkflowContext(prompt="build a card")

    assert context.mode == "builder"
    assert len(context.session_id) == 8
    assert context.metadata == {}
    assert context.history == []


def test_message_history_dict():
    msg = Message(role="ai", content="done", code="<div></div>")

    assert msg.to_history_dict() == {"role": "ai", "content": "done"}


def test_execution_result_failed():
    assert ExecutionResult().failed
    assert ExecutionResult(code="   ").failed
    assert ExecutionResult(code="<div></div>", error="boom").failed
    assert not ExecutionResult(code="<div></div>").failed
    assert not ExecutionResult(explanation="A closure captures variables").failed
    assert not ExecutionResult(files=[GeneratedFile(path="index.html", content="<html></html>")]).failed


def test_review_result_counts_and_dict():
    review = ReviewResult(
        quality_score=0.6,
        issues=[
            ReviewIssue(severity="error", message="Missing alt text"),
            ReviewIssue(severity="warning", message="Inline styles"),
            ReviewIssue(severity="warning", message="No focus state"),
        ],
        improved_code="<img alt='x'>",
    )

    assert review.count("warning") == 2
    assert review.count("error") == 1
    data = review.to_dict()
    assert data["has_improved_version"] is True
    assert len(data["issues"]) == 3


def test_plan_to_dict():
    plan = EnhancedPlan(id="plan_1", prompt="p", tasks=[PlanTask(id="1", title="Build markup")])

    data = plan.to_dict()

    assert data["tasks"][0]["title"] == "Build markup"
    assert data["is_fallback"] is False
    datetime.fromisoformat(data["created_at"])


def test_workflow_result_error_flag():
    ok = WorkflowResult(response="done", metadata=WorkflowMetadata(final_state=WorkflowState.DONE))
    failed = WorkflowResult(response="oops", metadata=WorkflowMetadata(final_state=WorkflowState.ERROR))

    assert not ok.is_error
    assert failed.is_error
    assert failed.to_dict()["metadata"]["final_state"] == "ERROR"


def test_memory_entry_dict_roundtrip():
    entry = MemoryEntry(
        session_id="s1",
        prompt="make a button",
        response="ok",
        intent="code_generation",
        components=("button",),
        quality_score=0.9,
    )

    restored = MemoryEntry.from_dict(entry.to_dict())

    assert restored == entry
    assert entry.id.startswith("mem_")


def test_agent_memory_entry_from_partial_dict():
    entry = AgentMemoryEntry.from_dict({"session_id": "s1", "prompt": "p", "lessons_learned": ["Keep it small"]})

    assert entry.intent == "code_generation"
    assert entry.mode == "builder"
    assert entry.lessons_learned == ("Keep it small",)
    assert entry.quality_score == 0.0
    assert entry.id.startswith("agentmem_")
