"""Past-interaction memory: save, retrieve and rank by relevance."""
import logging
from datetime import datetime

from forge.analysis.intent import IntentAnalysis
from forge.config.schema import MemoryConfig
from forge.orchestration.models import MemoryEntry, WorkflowContext, WorkflowResult
from forge.orchestration.result import Err, Ok, Result
from forge.storage.store import MEMORIES, MemoryStore

logger = logging.getLogger(__name__)

INTENT_WEIGHT = 0.5
FRAMEWORK_WEIGHT = 0.3
COMPONENT_WEIGHT = 0.2
QUALITY_WEIGHT = 0.2
RECENCY_WEIGHT = 0.1
RECENCY_WINDOW_DAYS = 30


def relevance_score(entry: MemoryEntry, intent: IntentAnalysis, now: datetime | None = None) -> float:
    """Score in [0, 1] of how useful a past entry is for the current request."""
    now = now or datetime.now()
    requirements = intent.requirements
    score = 0.0

    if entry.intent == intent.primary_intent:
        score += INTENT_WEIGHT

    if entry.framework and requirements.framework and entry.framework == requirements.framework:
        score += FRAMEWORK_WEIGHT

    if entry.components and requirements.components:
        common = [c for c in entry.components if c in requirements.components]
        score += len(common) / len(requirements.components) * COMPONENT_WEIGHT

    if entry.quality_score:
        score += entry.quality_score * QUALITY_WEIGHT

    days = (now - entry.timestamp).total_seconds() / 86400
    score += max(0.0, RECENCY_WEIGHT * (1 - days / RECENCY_WINDOW_DAYS))

    return min(1.0, max(0.0, score))


class MemoryEngine:
    """Wraps the store's ``memories`` collection."""

    def __init__(self, store: MemoryStore | None, config: MemoryConfig | None = None):
        self.store = store
        self.config = config or MemoryConfig()

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.store is not None

    async def save_workflow_result(
        self,
        context: WorkflowContext,
        result: WorkflowResult,
        intent: IntentAnalysis,
    ) -> Result[MemoryEntry | None, Exception]:
        if not self.enabled:
            return Ok(None)

        entry = MemoryEntry(
            session_id=context.session_id,
            user_id=context.user_id,
            prompt=context.prompt,
            response=result.response,
            code=result.code,
            intent=intent.primary_intent,
            framework=intent.requirements.framework,
            components=intent.requirements.components,
            quality_score=result.metadata.quality_score,
            stages=tuple(result.metadata.stages_executed),
        )
        try:
            await self.store.append(MEMORIES, entry.to_dict())
        except Exception as e:
            return Err(e)

        logger.info(f"Saved workflow result for session {entry.session_id} ({entry.intent})")
        return Ok(entry)

    async def retrieve_relevant_memory(
        self,
        context: WorkflowContext,
        intent: IntentAnalysis,
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        """Ranked past entries for this user, or this session when anonymous."""
        if not self.enabled:
            return []

        limit = self.config.retrieval_limit if limit is None else limit
        filters = {"user_id": context.user_id} if context.user_id else {"session_id": context.session_id}
        try:
            records = await self.store.query(MEMORIES, filters=filters, limit=self.config.max_entries)
        except Exception as e:
            logger.warning(f"Could not retrieve memory: {e}")
            return []

        ranked = self.rank_by_relevance([MemoryEntry.from_dict(r) for r in records], intent)
        logger.debug(f"Retrieved {len(records)} memories, using {min(limit, len(ranked))}")
        return ranked[:limit]

    async def retrieve_session_memory(self, session_id: str, limit: int | None = None) -> list[MemoryEntry]:
        """Newest entries of one session."""
        if not self.enabled:
            return []
        limit = self.config.retrieval_limit if limit is None else limit
        try:
            records = await self.store.query(MEMORIES, filters={"session_id": session_id}, limit=limit)
        except Exception as e:
            logger.warning(f"Could not retrieve session memory: {e}")
            return []
        return [MemoryEntry.from_dict(r) for r in records]

    @staticmethod
    def rank_by_relevance(
        entries: list[MemoryEntry], intent: IntentAnalysis, now: datetime | None = None
    ) -> list[MemoryEntry]:
        now = now or datetime.now()
        return sorted(entries, key=lambda e: relevance_score(e, intent, now), reverse=True)

    @staticmethod
    def memory_context(entries: list[MemoryEntry]) -> str:
        """Render entries for injection into agent prompts."""
        parts: list[str] = []
        for index, entry in enumerate(entries, 1):
            parts.append(f"\n[Previous Interaction {index}]")
            parts.append(f"Prompt: {entry.prompt[:200]}")
            if entry.code:
                parts.append(f"Code: {entry.code[:300]}")
            parts.append(f"Intent: {entry.intent}")
        return "\n".join(parts)
