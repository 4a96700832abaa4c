"""Agent role implementations."""
from forge.agents.roles.executor import ExecutorAgent
from forge.agents.roles.planner import PlannerAgent
from forge.agents.roles.reflection import SelfReflectionAgent
from forge.agents.roles.reviewer import ReviewerAgent

__all__ = ["ExecutorAgent", "PlannerAgent", "ReviewerAgent", "SelfReflectionAgent"]
