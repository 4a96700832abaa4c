"""Base class shared by the agent roles."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from forge.agents.prompts import PromptEnhancer
from forge.analysis.intent import IntentAnalysis
from forge.engines.context import ContextAwareness
from forge.engines.profile import UserProfile
from forge.llm.client import LLMResponse
from forge.llm.retry import ResilientLLM
from forge.orchestration.models import WorkflowContext

# Keys in WorkflowContext.metadata
AGENT_CONTEXT_KEY = "agent_context"
REVISION_FEEDBACK_KEY = "revision_feedback"


@dataclass(frozen=True)
class AgentContext:
    """Per-request data every agent folds into its system prompt."""
    intent: IntentAnalysis | None = None
    profile: UserProfile | None = None
    awareness: ContextAwareness | None = None
    memory_context: str = ""
    personalization: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentTool:
    """A capability an agent may call, advertised in its system prompt."""
    name: str
    description: str
    execute: Callable[..., Awaitable[Any]]


def agent_context(context: WorkflowContext) -> AgentContext:
    value = context.metadata.get(AGENT_CONTEXT_KEY)
    return value if isinstance(value, AgentContext) else AgentContext()


class BaseAgent(ABC):
    """An agent role bound to one model.

    Agents hold no per-request state so one instance can serve concurrent
    requests; everything request-specific comes in through the context.
    """

    def __init__(
        self,
        model: str,
        llm: ResilientLLM,
        timeout: float | None = None,
        max_tokens: int = 4096,
        tools: tuple[AgentTool, ...] = (),
    ):
        self.model = model
        self.llm = llm
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.tools = tools

    @property
    @abstractmethod
    def role_name(self) -> str:
        """Agent role: planner, executor, reviewer, reflection"""
        pass

    @property
    @abstractmethod
    def goal(self) -> str:
        """What this agent optimizes for"""
        pass

    @abstractmethod
    async def run(self, context: WorkflowContext, *args, **kwargs) -> Any:
        pass

    def system_prompt(self, base_prompt: str, context: WorkflowContext) -> str:
        """Base prompt enhanced with user, context awareness and past interactions."""
        data = agent_context(context)
        prompt = PromptEnhancer.enhance_system_prompt(base_prompt, data.awareness, data.profile, data.intent)
        if data.memory_context:
            prompt += f"\n\n=== RELEVANT PAST INTERACTIONS ===\n{data.memory_context}"
        if self.tools:
            prompt += f"\n\n{self.tool_section()}"
        return prompt

    def tool_section(self) -> str:
        if not self.tools:
            return ""
        lines = "\n".join(f"- {tool.name}: {tool.description}" for tool in self.tools)
        return f"=== AVAILABLE TOOLS ===\n{lines}"

    async def use_tool(self, name: str, **params) -> Any:
        """Run one of this agent's tools by name.

        Raises:
            KeyError: If the agent has no tool called ``name``
        """
        for tool in self.tools:
            if tool.name == name:
                return await tool.execute(**params)
        raise KeyError(f"{self.role_name} agent has no tool {name!r}")

    async def _call_llm(
        self,
        prompt: str,
        system: str,
        context: WorkflowContext,
        mode: str | None = None,
    ) -> LLMResponse:
        """Call the backend, bounded by this agent's stage timeout.

        Raises:
            asyncio.TimeoutError: If the stage timeout expires
            BackendError: If the backend fails after retries
        """
        call = self.llm.complete(
            prompt,
            self.model,
            system=system,
            history=[msg.to_history_dict() for msg in context.history],
            images=context.images,
            mode=mode or context.mode,
            max_tokens=self.max_tokens,
        )
        if self.timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.timeout)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"
