"""Self-reflection agent role implementation."""
import logging

from forge.agents.base import BaseAgent
from forge.agents.parsing import ReflectionParseError, decode_reflection, default_reflection
from forge.agents.prompts import REFLECTION_SYSTEM_PROMPT
from forge.analysis.intent import IntentAnalysis
from forge.orchestration.models import (
    EnhancedPlan,
    ExecutionResult,
    ReviewResult,
    SelfReflectionResult,
    WorkflowContext,
    WorkflowResult,
)

logger = logging.getLogger(__name__)


class SelfReflectionAgent(BaseAgent):
    """Looks back at a finished run and records what to do differently."""

    @property
    def role_name(self) -> str:
        return "reflection"

    @property
    def goal(self) -> str:
        return "Turn finished runs into lessons for future runs"

    async def run(
        self,
        context: WorkflowContext,
        execution_result: ExecutionResult,
        review: ReviewResult | None,
        plan: EnhancedPlan | None,
        workflow_result: WorkflowResult,
        intent: IntentAnalysis,
    ) -> SelfReflectionResult:
        """Reflect on the run. Backend failures and timeouts propagate."""
        quality = workflow_result.metadata.quality_score
        if quality is None:
            quality = review.quality_score if review else 0.0

        response = await self._call_llm(
            self.reflection_prompt(execution_result, review, plan, workflow_result, intent),
            self.system_prompt(REFLECTION_SYSTEM_PROMPT, context),
            context,
            mode="tutor",
        )

        try:
            reflection = decode_reflection(response.content, quality)
        except ReflectionParseError as e:
            logger.warning(f"Could not decode reflection ({e}), using defaults")
            reflection = default_reflection(quality)

        logger.info(f"Reflection completed (confidence {reflection.confidence:.2f})")
        return reflection

    def reflection_prompt(
        self,
        execution_result: ExecutionResult,
        review: ReviewResult | None,
        plan: EnhancedPlan | None,
        workflow_result: WorkflowResult,
        intent: IntentAnalysis,
    ) -> str:
        req = intent.requirements
        meta = workflow_result.metadata
        parts = [
            "Analyze this workflow execution and provide reflection:",
            "",
            "=== USER INTENT ===",
            f"Primary Intent: {intent.primary_intent}",
            f"Confidence: {intent.confidence}",
            f"Framework: {req.framework or 'none'}",
            f"Components: {', '.join(req.components) or 'none'}",
            f"Features: {', '.join(req.features) or 'none'}",
        ]

        if plan is not None:
            parts += [
                "",
                "=== EXECUTION PLAN ===",
                f"Tasks: {len(plan.tasks)}",
                f"Execution Steps: {len(plan.execution_steps)}",
                f"Quality Criteria: {len(plan.quality_criteria)}",
            ]

        parts += [
            "",
            "=== EXECUTION RESULT ===",
            f"Has Code: {bool(execution_result.code)}",
            f"Has Files: {bool(execution_result.files)}",
            f"Has Explanation: {bool(execution_result.explanation)}",
            f"Execution Time: {execution_result.metadata.execution_time:.2f}s",
            f"Tokens Used: {execution_result.metadata.tokens_used}",
        ]
        if execution_result.code:
            parts.append(f"Code Length: {len(execution_result.code)} chars")
            parts.append(f"Code Preview: {execution_result.code[:500]}")

        if review is not None:
            parts += [
                "",
                "=== REVIEW RESULT ===",
                f"Quality Score: {review.quality_score}",
                f"Rejected: {review.rejected}",
                f"Issues: {len(review.issues)}",
                f"Suggestions: {len(review.suggestions)}",
            ]
            parts.extend(f"{i}. [{issue.severity}] {issue.message}" for i, issue in enumerate(review.issues, 1))

        parts += [
            "",
            "=== WORKFLOW METADATA ===",
            f"Execution Attempts: {meta.execution_attempts}",
            f"Revision Attempts: {meta.revision_attempts}",
            f"Stages Executed: {', '.join(meta.stages_executed) or 'none'}",
            f"Final State: {meta.final_state.value}",
            "",
            "Answer with the sections WHAT WORKED, WHAT FAILED, WHAT TO IMPROVE, "
            "LESSONS LEARNED and RECOMMENDATIONS, each as a bullet list.",
        ]
        return "\n".join(parts)
