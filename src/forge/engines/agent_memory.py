"""Stores self-reflections and mines them for recurring improvements."""
import logging
from collections import Counter
from collections.abc import Iterable

from forge.analysis.intent import IntentAnalysis
from forge.config.schema import MemoryConfig
from forge.orchestration.models import AgentMemoryEntry, SelfReflectionResult, WorkflowContext
from forge.orchestration.result import Err, Ok, Result
from forge.storage.store import AGENT_MEMORIES, MemoryStore

logger = logging.getLogger(__name__)

TOP_N = 5


def _top_by_frequency(items: Iterable[str], n: int = TOP_N) -> list[str]:
    return [item for item, _ in Counter(items).most_common(n)]


class AgentMemoryEngine:
    """Append-only log of reflections, retrievable by intent and user."""

    def __init__(self, store: MemoryStore | None, config: MemoryConfig | None = None):
        self.store = store
        self.config = config or MemoryConfig()

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.store is not None

    async def save_agent_memory(
        self,
        context: WorkflowContext,
        intent: IntentAnalysis,
        reflection: SelfReflectionResult,
    ) -> Result[AgentMemoryEntry | None, Exception]:
        if not self.enabled:
            return Ok(None)

        requirements = intent.requirements
        entry = AgentMemoryEntry(
            session_id=context.session_id,
            user_id=context.user_id,
            prompt=context.prompt[:500],
            intent=intent.primary_intent,
            mode=context.mode,
            framework=requirements.framework,
            components=requirements.components,
            features=requirements.features,
            what_worked=tuple(reflection.what_worked),
            what_failed=tuple(reflection.what_failed),
            what_to_improve=tuple(reflection.what_to_improve),
            lessons_learned=tuple(reflection.lessons_learned),
            recommendations=tuple(reflection.recommendations),
            quality_score=reflection.quality_score,
            confidence=reflection.confidence,
        )
        try:
            await self.store.append(AGENT_MEMORIES, entry.to_dict())
        except Exception as e:
            return Err(e)

        logger.info(f"Saved reflection for session {entry.session_id} ({entry.intent}, quality {entry.quality_score:.2f})")
        return Ok(entry)

    async def retrieve_agent_memory(
        self,
        intent: str,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[AgentMemoryEntry]:
        """Most recent reflections for ``intent`` by ``user_id``, newest first."""
        if not self.enabled:
            return []

        limit = self.config.agent_memory_limit if limit is None else limit
        try:
            records = await self.store.query(
                AGENT_MEMORIES, filters={"intent": intent, "user_id": user_id}, limit=limit
            )
        except Exception as e:
            logger.warning(f"Could not retrieve agent memory: {e}")
            return []

        memories = [AgentMemoryEntry.from_dict(r) for r in records]
        if memories:
            logger.debug(f"Retrieved {len(memories)} agent memories for intent {intent}")
        return memories

    @staticmethod
    def improvement_suggestions(memories: list[AgentMemoryEntry]) -> list[str]:
        """Top five recurring improvement items."""
        return _top_by_frequency(item for m in memories for item in m.what_to_improve)

    @staticmethod
    def lessons_learned(memories: list[AgentMemoryEntry]) -> list[str]:
        """Top five recurring lessons."""
        return _top_by_frequency(item for m in memories for item in m.lessons_learned)
