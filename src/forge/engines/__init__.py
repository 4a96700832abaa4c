"""Engines that turn analyzed input into decisions and context."""
from forge.engines.agent_memory import AgentMemoryEngine
from forge.engines.context import ContextAwareness, ContextAwarenessEngine
from forge.engines.decision import DecisionEngine, WorkflowDecision, estimate_routing_complexity
from forge.engines.memory import MemoryEngine, relevance_score
from forge.engines.profile import UserProfile, UserProfileEngine
from forge.engines.review_decision import ReviewDecision, ReviewDecisionEngine

__all__ = [
    "AgentMemoryEngine",
    "ContextAwareness",
    "ContextAwarenessEngine",
    "DecisionEngine",
    "MemoryEngine",
    "ReviewDecision",
    "ReviewDecisionEngine",
    "UserProfile",
    "UserProfileEngine",
    "WorkflowDecision",
    "estimate_routing_complexity",
    "relevance_score",
]
