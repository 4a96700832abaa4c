"""Planner agent role implementation."""
import asyncio
import logging
import uuid

from forge.agents.base import BaseAgent
from forge.agents.parsing import PlanParseError, decode_plan_tasks
from forge.agents.prompts import PLANNER_SYSTEM_PROMPT
from forge.llm.client import BackendError
from forge.orchestration.models import (
    EnhancedPlan,
    ExecutionStep,
    PlanTask,
    PreprocessedInput,
    WorkflowContext,
)

logger = logging.getLogger(__name__)


class PlannerAgent(BaseAgent):
    """Create structured implementation plans."""

    @property
    def role_name(self) -> str:
        return "planner"

    @property
    def goal(self) -> str:
        return "Create clear, step-by-step implementation plans"

    async def run(self, context: WorkflowContext, prompt: str, preprocessed: PreprocessedInput) -> EnhancedPlan:
        """Plan the request. Never raises; failures yield the fallback plan."""
        logger.debug(f"Planning with {self.model} (intent={preprocessed.intent}, complexity={preprocessed.complexity})")

        try:
            response = await self._call_llm(
                self.planning_prompt(prompt, preprocessed),
                self.system_prompt(PLANNER_SYSTEM_PROMPT, context),
                context,
                mode="tutor",
            )
            tasks = decode_plan_tasks(response.content)
        except asyncio.TimeoutError:
            logger.warning(f"Planner timed out after {self.timeout}s, using fallback plan")
            return self.fallback_plan(prompt, preprocessed)
        except (BackendError, PlanParseError) as e:
            logger.warning(f"Planner failed ({e}), using fallback plan")
            return self.fallback_plan(prompt, preprocessed)

        plan = EnhancedPlan(
            id=uuid.uuid4().hex[:12],
            prompt=prompt,
            tasks=tasks,
            execution_steps=self.execution_steps(tasks),
            quality_criteria=self.quality_criteria(preprocessed),
            review_checklist=self.review_checklist(preprocessed),
        )
        logger.info(f"Plan created: {len(plan.tasks)} tasks, {len(plan.quality_criteria)} criteria")
        return plan

    def planning_prompt(self, prompt: str, preprocessed: PreprocessedInput) -> str:
        parts = [f"Create a detailed execution plan for the following request:\n\n{prompt}\n"]

        if preprocessed.has_code:
            parts.append("Context: User has existing code that may need to be modified.")
        if preprocessed.has_images:
            parts.append("Context: User has provided images that should be analyzed.")
        if preprocessed.framework:
            parts.append(f"Framework: {preprocessed.framework}")

        style = preprocessed.metadata.get("style")
        if style:
            parts.append(f"Style Preference: {style}")
        components = preprocessed.metadata.get("components") or []
        if components:
            parts.append(f"Required Components: {', '.join(components)}")

        parts.append(
            "\nPlease break down this request into detailed, actionable steps "
            "with dependencies and quality criteria."
        )
        return "\n".join(parts)

    @staticmethod
    def execution_steps(tasks: list[PlanTask]) -> list[ExecutionStep]:
        """One step per task; dependency ids become step numbers, unknown ids are dropped."""
        step_of = {task.id: index for index, task in enumerate(tasks, 1)}
        return [
            ExecutionStep(
                step=index,
                action=task.description or task.title,
                expected_output=f"Complete {task.title.lower()}",
                dependencies=[step_of[d] for d in task.dependencies if d in step_of],
            )
            for index, task in enumerate(tasks, 1)
        ]

    @staticmethod
    def quality_criteria(preprocessed: PreprocessedInput) -> list[str]:
        criteria = [
            "Code follows best practices and conventions",
            "Components are properly structured and reusable",
            "Responsive design works on all screen sizes",
            "No console errors or warnings",
            "Proper error handling is implemented",
        ]
        if preprocessed.framework and preprocessed.framework != "html":
            criteria.append(f"Follows {preprocessed.framework} framework conventions")
            criteria.append("Proper file structure and imports")
        style = preprocessed.metadata.get("style")
        if style:
            criteria.append(f"Follows {style} design style")
        if preprocessed.has_images:
            criteria.append("Image analysis is accurate and complete")
        return criteria

    @staticmethod
    def review_checklist(preprocessed: PreprocessedInput) -> list[str]:
        checklist = [
            "Check for syntax errors",
            "Verify responsive design",
            "Test component functionality",
            "Review code quality and readability",
            "Check for accessibility issues",
        ]
        if preprocessed.framework and preprocessed.framework != "html":
            checklist.append("Verify framework-specific best practices")
            checklist.append("Check import statements and dependencies")
        return checklist

    def fallback_plan(self, prompt: str, preprocessed: PreprocessedInput) -> EnhancedPlan:
        tasks = [
            PlanTask(
                id="1",
                title="Analyze Requirements",
                description="Understand the user requirements",
                priority="high",
                category="setup",
            ),
            PlanTask(
                id="2",
                title="Generate Solution",
                description="Create the requested code or explanation",
                dependencies=["1"],
                priority="high",
                category="component" if preprocessed.intent == "code_generation" else "logic",
            ),
        ]
        return EnhancedPlan(
            id=uuid.uuid4().hex[:12],
            prompt=prompt,
            tasks=tasks,
            execution_steps=[
                ExecutionStep(1, "Analyze requirements", "Clear understanding of requirements"),
                ExecutionStep(2, "Generate solution", "Complete code or explanation", dependencies=[1]),
            ],
            quality_criteria=self.quality_criteria(preprocessed),
            review_checklist=self.review_checklist(preprocessed),
            is_fallback=True,
        )
