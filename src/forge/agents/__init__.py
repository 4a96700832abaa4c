"""Agent roles, prompts and output decoding."""
from forge.agents.base import AGENT_CONTEXT_KEY, REVISION_FEEDBACK_KEY, AgentContext, AgentTool, BaseAgent
from forge.agents.factory import AgentBinding, AgentFactory, AgentTeam
from forge.agents.parsing import ParseError, PlanParseError, ReflectionParseError, ReviewParseError

__all__ = [
    "AGENT_CONTEXT_KEY",
    "REVISION_FEEDBACK_KEY",
    "AgentBinding",
    "AgentContext",
    "AgentFactory",
    "AgentTeam",
    "AgentTool",
    "BaseAgent",
    "ParseError",
    "PlanParseError",
    "ReflectionParseError",
    "ReviewParseError",
]
