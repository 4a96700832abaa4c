"""Tests for context awareness snapshots"""
import pytest

from forge.analysis.intent import IntentAnalysis, Requirements
from forge.engines.agent_memory import AgentMemoryEngine
from forge.engines.context import ContextAwarenessEngine
from forge.orchestration.models import AgentMemoryEntry, Message, WorkflowState
from forge.storage.store import AGENT_MEMORIES, USERS, InMemoryStore

INTENT = IntentAnalysis(
    primary_intent="code_generation",
    confidence=0.9,
    requirements=Requirements(components=("button",)),
)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store):
    return ContextAwarenessEngine(AgentMemoryEngine(store), store)


async def _remember(store, session_id="old", **fields):
    entry = AgentMemoryEntry(session_id=session_id, prompt="p", intent="code_generation",
                             mode="builder", user_id="u1", **fields)
    await store.append(AGENT_MEMORIES, entry.to_dict())


@pytest.mark.asyncio
async def test_anonymous_gets_no_snapshot(engine):
    assert await engine.build_context(None, "s1", WorkflowState.IDLE, [], INTENT) is None


@pytest.mark.asyncio
async def test_snapshot_facets(engine, store):
    await store.put(USERS, "u1", {"full_name": "Ada", "email": "ada@example.com"})
    await _remember(store, session_id="older", what_to_improve=("Add focus styles",), quality_score=0.6)
    await _remember(store, what_to_improve=("Add focus styles",), what_worked=("Clean markup",), quality_score=0.7)
    history = [
        Message(role="user", content="create responsive button component"),
        Message(role="ai", content="done"),
        Message(role="user", content="create responsive button again"),
    ]

    context = await engine.build_context("u1", "s1", WorkflowState.IDLE, history, INTENT)

    assert context.user.name == "Ada"
    assert context.user.email == "ada@example.com"
    assert not context.current.is_processing
    assert context.past.total_sessions == 3
    assert context.past.total_messages == 3
    assert context.past.common_patterns[0] == "create responsive"
    assert context.past.recent_workflows[0].what_worked == ("Clean markup",)
    assert context.future.planned_tasks[0].task == "Add focus styles"
    assert context.future.planned_tasks[0].priority == "normal"
    assert context.future.upcoming_intents == ("component_development",)
    assert context.future.pending_improvements == ("Add focus styles",)


@pytest.mark.asyncio
async def test_summary_is_deterministic(engine, store):
    await _remember(store, what_to_improve=("Add focus styles",), quality_score=0.7)
    context = await engine.build_context("u1", "s1", WorkflowState.IDLE, [], INTENT, user_name="Ada")

    summary = ContextAwarenessEngine.generate_context_summary(context)

    assert summary == ContextAwarenessEngine.generate_context_summary(context)
    assert "=== USER INFORMATION ===" in summary
    assert "User Name: Ada" in summary
    assert "Workflow State: IDLE" in summary
    assert "1. code_generation - Quality: 0.70" in summary
    assert "1. [LOW] Add focus styles" in summary


@pytest.mark.asyncio
async def test_update_context_advances_current_only(engine):
    context = await engine.build_context("u1", "s1", WorkflowState.IDLE, [], INTENT)

    updated = ContextAwarenessEngine.update_context(context, WorkflowState.EXECUTING, task="Executing code")

    assert updated.current.state == WorkflowState.EXECUTING
    assert updated.current.is_processing
    assert updated.current.task == "Executing code"
    assert updated.past is context.past
    assert context.current.state == WorkflowState.IDLE


@pytest.mark.asyncio
async def test_store_failure_gives_no_snapshot():
    class BrokenStore(InMemoryStore):
        async def get(self, collection, key):
            raise OSError("offline")

    store = BrokenStore()
    engine = ContextAwarenessEngine(AgentMemoryEngine(store), store)

    assert await engine.build_context("u1", "s1", WorkflowState.IDLE, [], INTENT) is None
