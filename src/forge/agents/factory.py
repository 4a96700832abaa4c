"""Builds and caches agent instances per (role, model)."""
import logging
from dataclasses import dataclass, replace
from typing import ClassVar

from forge.agents.base import AgentTool, BaseAgent
from forge.agents.roles.executor import ExecutorAgent
from forge.agents.roles.planner import PlannerAgent
from forge.agents.roles.reflection import SelfReflectionAgent
from forge.agents.roles.reviewer import ReviewerAgent
from forge.config.schema import WorkflowConfig
from forge.engines.decision import RoutingDecision
from forge.llm.retry import ResilientLLM

logger = logging.getLogger(__name__)

ROLES = ("planner", "executor", "reviewer", "reflection")


@dataclass(frozen=True)
class AgentBinding:
    """Construction settings for one role"""
    role: str
    model: str
    timeout: float | None = None
    max_tokens: int = 4096
    tools: tuple[AgentTool, ...] = ()


@dataclass(frozen=True)
class AgentTeam:
    planner: PlannerAgent
    executor: ExecutorAgent
    reviewer: ReviewerAgent
    reflection: SelfReflectionAgent


class AgentFactory:
    """Lazily constructs agents and caches them by (role, model).

    Cached agents are stateless and shared across requests. Reconfiguring a
    role replaces its binding and drops that role's cached agents; existing
    instances are never mutated.
    """

    AGENT_CLASSES: ClassVar[dict[str, type[BaseAgent]]] = {
        "planner": PlannerAgent,
        "executor": ExecutorAgent,
        "reviewer": ReviewerAgent,
        "reflection": SelfReflectionAgent,
    }

    def __init__(self, llm: ResilientLLM, config: WorkflowConfig):
        self.llm = llm
        self._bindings: dict[str, AgentBinding] = {
            role: AgentBinding(
                role=role,
                model=config.models.for_role(role),
                timeout=getattr(config.timeouts, role),
                max_tokens=config.backend.max_tokens,
            )
            for role in ROLES
        }
        self._agents: dict[tuple[str, str], BaseAgent] = {}

    def binding(self, role: str) -> AgentBinding:
        if role not in self._bindings:
            raise ValueError(f"Unknown agent role: {role}")
        return self._bindings[role]

    def get(self, role: str, model: str | None = None) -> BaseAgent:
        """Get the agent for ``role``, using the bound model unless one is given."""
        binding = self.binding(role)
        key = (role, model or binding.model)

        agent = self._agents.get(key)
        if agent is None:
            agent = self.AGENT_CLASSES[role](
                key[1], self.llm, timeout=binding.timeout, max_tokens=binding.max_tokens, tools=binding.tools
            )
            self._agents = {**self._agents, key: agent}
            logger.debug(f"Created {role} agent for model {key[1]}")
        return agent

    def configure(self, role: str, model: str | None = None, **changes) -> AgentBinding:
        """Replace the binding for ``role``. Returns the new binding."""
        if model is not None:
            changes["model"] = model
        binding = replace(self.binding(role), **changes)
        self._bindings = {**self._bindings, role: binding}
        self._agents = {k: v for k, v in self._agents.items() if k[0] != role}
        logger.info(f"Reconfigured {role} agent: {binding}")
        return binding

    def inject_tools(self, role: str, tools: list[AgentTool]) -> AgentBinding:
        """Add tools to a role's binding. Tools with an existing name are replaced."""
        names = {tool.name for tool in tools}
        kept = tuple(t for t in self.binding(role).tools if t.name not in names)
        return self.configure(role, tools=kept + tuple(tools))

    def create_team(self, routing: RoutingDecision) -> AgentTeam:
        return AgentTeam(
            planner=self.get("planner", routing.planner),
            executor=self.get("executor", routing.executor),
            reviewer=self.get("reviewer", routing.reviewer),
            reflection=self.get("reflection", routing.reflection),
        )

    def clear(self) -> None:
        self._agents = {}

    def active_agents(self) -> list[tuple[str, str]]:
        """(role, model) pairs currently cached"""
        return sorted(self._agents)
