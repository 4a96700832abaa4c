"""Current, past and future snapshot injected into agent prompts."""
import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime

from forge.analysis.intent import IntentAnalysis
from forge.engines.agent_memory import AgentMemoryEngine
from forge.orchestration.models import AgentMemoryEntry, Message, WorkflowState
from forge.storage.store import USERS, MemoryStore

logger = logging.getLogger(__name__)

RECENT_MESSAGES = 10
RECENT_WORKFLOWS = 5
TOP_PATTERNS = 5

_IDLE_STATES = {WorkflowState.IDLE, WorkflowState.DONE, WorkflowState.ERROR}


@dataclass(frozen=True)
class CurrentContext:
    timestamp: datetime
    state: WorkflowState
    task: str | None = None
    intent: str | None = None
    session_id: str | None = None
    is_processing: bool = False


@dataclass(frozen=True)
class WorkflowRecap:
    intent: str
    quality_score: float
    timestamp: datetime
    what_worked: tuple[str, ...] = ()
    what_failed: tuple[str, ...] = ()


@dataclass(frozen=True)
class PastContext:
    recent_messages: tuple[Message, ...] = ()
    recent_intents: tuple[tuple[str, datetime], ...] = ()
    recent_workflows: tuple[WorkflowRecap, ...] = ()
    agent_memories: tuple[AgentMemoryEntry, ...] = ()
    total_sessions: int = 0
    total_messages: int = 0
    common_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlannedTask:
    task: str
    priority: str  # "low" | "normal" | "high"


@dataclass(frozen=True)
class FutureContext:
    planned_tasks: tuple[PlannedTask, ...] = ()
    upcoming_intents: tuple[str, ...] = ()
    pending_improvements: tuple[str, ...] = ()


@dataclass(frozen=True)
class UserInfo:
    id: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class ContextAwareness:
    current: CurrentContext
    past: PastContext = field(default_factory=PastContext)
    future: FutureContext = field(default_factory=FutureContext)
    user: UserInfo | None = None


class ContextAwarenessEngine:
    """Builds the snapshot from history and agent memory."""

    def __init__(self, agent_memory: AgentMemoryEngine, store: MemoryStore | None = None):
        self.agent_memory = agent_memory
        self.store = store

    async def build_context(
        self,
        user_id: str | None,
        session_id: str | None,
        state: WorkflowState,
        history: list[Message],
        intent: IntentAnalysis,
        task: str | None = None,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> ContextAwareness | None:
        if not user_id:
            return None

        try:
            if self.store is not None and not user_name:
                user = await self.store.get(USERS, user_id) or {}
                user_name = user.get("full_name")
                user_email = user_email or user.get("email")

            memories = await self.agent_memory.retrieve_agent_memory(intent.primary_intent, user_id)
        except Exception as e:
            logger.warning(f"Could not build context awareness: {e}")
            return None

        return ContextAwareness(
            current=CurrentContext(
                timestamp=datetime.now(),
                state=state,
                task=task,
                intent=intent.primary_intent,
                session_id=session_id,
                is_processing=state not in _IDLE_STATES,
            ),
            past=self._analyze_past(history, memories, session_id),
            future=self._analyze_future(memories, intent),
            user=UserInfo(id=user_id, name=user_name, email=user_email),
        )

    def _analyze_past(
        self,
        history: list[Message],
        memories: list[AgentMemoryEntry],
        session_id: str | None,
    ) -> PastContext:
        recent = memories[:RECENT_WORKFLOWS]

        phrase_counts: Counter[str] = Counter()
        for msg in history:
            if msg.role != "user":
                continue
            words = [w for w in msg.content.lower().split() if len(w) > 3]
            for first, second in zip(words, words[1:]):
                phrase_counts[f"{first} {second}"] += 1

        sessions = {m.session_id for m in memories}
        if session_id:
            sessions.add(session_id)

        return PastContext(
            recent_messages=tuple(history[-RECENT_MESSAGES:]),
            recent_intents=tuple((m.intent, m.timestamp) for m in recent),
            recent_workflows=tuple(
                WorkflowRecap(m.intent, m.quality_score, m.timestamp, m.what_worked, m.what_failed)
                for m in recent
            ),
            agent_memories=tuple(memories),
            total_sessions=len(sessions),
            total_messages=len(history),
            common_patterns=tuple(p for p, _ in phrase_counts.most_common(TOP_PATTERNS)),
        )

    def _analyze_future(self, memories: list[AgentMemoryEntry], intent: IntentAnalysis) -> FutureContext:
        counts = Counter(item for m in memories for item in m.what_to_improve)
        planned = []
        for task, count in counts.most_common(5):
            priority = "high" if count >= 3 else "normal" if count >= 2 else "low"
            planned.append(PlannedTask(task, priority))

        upcoming = []
        if intent.requirements.components:
            upcoming.append("component_development")
        if intent.requirements.features:
            upcoming.append("feature_implementation")

        return FutureContext(
            planned_tasks=tuple(planned),
            upcoming_intents=tuple(upcoming),
            pending_improvements=tuple(AgentMemoryEngine.improvement_suggestions(memories)),
        )

    @staticmethod
    def generate_context_summary(context: ContextAwareness) -> str:
        """Render the snapshot as prompt text. Same snapshot, same text."""
        parts: list[str] = []

        if context.user and context.user.name:
            parts.append("\n=== USER INFORMATION ===")
            parts.append(f"User Name: {context.user.name}")
            if context.user.email:
                parts.append(f"Email: {context.user.email}")

        current = context.current
        parts.append("\n=== CURRENT STATE ===")
        parts.append(f"Current Time: {current.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
        parts.append(f"Workflow State: {current.state.value}")
        if current.task:
            parts.append(f"Current Task: {current.task}")
        if current.intent:
            parts.append(f"Current Intent: {current.intent}")
        parts.append(f"Is Processing: {'Yes' if current.is_processing else 'No'}")

        past = context.past
        parts.append("\n=== PAST (What Happened Before) ===")
        parts.append(f"Total Messages: {past.total_messages}")
        parts.append(f"Total Sessions: {past.total_sessions}")

        if past.recent_intents:
            parts.append("\nRecent Intents:")
            for i, (intent, ts) in enumerate(past.recent_intents, 1):
                parts.append(f"{i}. {intent} ({ts.strftime('%Y-%m-%d')})")

        if past.recent_workflows:
            parts.append("\nRecent Workflows:")
            for i, workflow in enumerate(past.recent_workflows, 1):
                parts.append(f"{i}. {workflow.intent} - Quality: {workflow.quality_score:.2f}")
                if workflow.what_worked:
                    parts.append(f"   What Worked: {workflow.what_worked[0]}")
                if workflow.what_failed:
                    parts.append(f"   What Failed: {workflow.what_failed[0]}")

        if past.common_patterns:
            parts.append(f"\nCommon Patterns: {', '.join(past.common_patterns)}")

        future = context.future
        parts.append("\n=== FUTURE (What's Planned) ===")
        if future.planned_tasks:
            parts.append("Planned Tasks:")
            for i, task in enumerate(future.planned_tasks, 1):
                parts.append(f"{i}. [{task.priority.upper()}] {task.task}")

        if future.upcoming_intents:
            parts.append(f"\nUpcoming Intents: {', '.join(future.upcoming_intents)}")

        if future.pending_improvements:
            parts.append("\nPending Improvements:")
            for i, improvement in enumerate(future.pending_improvements, 1):
                parts.append(f"{i}. {improvement}")

        return "\n".join(parts)

    @staticmethod
    def update_context(
        context: ContextAwareness,
        state: WorkflowState,
        task: str | None = None,
    ) -> ContextAwareness:
        """New snapshot with only the current facet advanced."""
        return replace(
            context,
            current=replace(
                context.current,
                timestamp=datetime.now(),
                state=state,
                task=task,
                is_processing=state not in _IDLE_STATES,
            ),
        )
