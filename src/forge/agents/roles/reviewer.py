"""Reviewer agent role implementation."""
import logging

from forge.agents.base import BaseAgent
from forge.agents.parsing import ReviewParseError, decode_review
from forge.agents.prompts import REVIEWER_SYSTEM_PROMPT_BUILDER, REVIEWER_SYSTEM_PROMPT_TUTOR
from forge.orchestration.models import EnhancedPlan, ExecutionResult, ReviewResult, WorkflowContext

logger = logging.getLogger(__name__)

BASIC_REVIEW_SCORE = 0.7
MAX_REVIEWED_CHARS = 2000


class ReviewerAgent(BaseAgent):
    """Adversarial critique of the executor's artifact."""

    @property
    def role_name(self) -> str:
        return "reviewer"

    @property
    def goal(self) -> str:
        return "Find defects and reject work that does not meet the quality bar"

    async def run(
        self,
        context: WorkflowContext,
        execution_result: ExecutionResult,
        plan: EnhancedPlan | None = None,
    ) -> ReviewResult:
        """Review the artifact.

        Raises:
            asyncio.TimeoutError: If the review stage times out
            BackendError: If the backend fails after retries
        """
        base = REVIEWER_SYSTEM_PROMPT_BUILDER if context.mode == "builder" else REVIEWER_SYSTEM_PROMPT_TUTOR
        response = await self._call_llm(
            self.review_prompt(context, execution_result, plan),
            self.system_prompt(base, context),
            context,
            mode="tutor",
        )

        try:
            review = decode_review(response.content, execution_result)
        except ReviewParseError as e:
            logger.warning(f"Could not decode review ({e}), using basic review")
            return self.basic_review()

        logger.info(
            f"Review completed: score={review.quality_score:.2f} issues={len(review.issues)} "
            f"rejected={review.rejected}"
        )
        return review

    def review_prompt(
        self, context: WorkflowContext, execution_result: ExecutionResult, plan: EnhancedPlan | None
    ) -> str:
        kind = "code" if context.mode == "builder" else "explanation"
        parts = [f"Review the following {kind}:", "", f"Original Request: {context.prompt}", ""]

        if execution_result.files:
            parts.append("Files:")
            for f in execution_result.files:
                parts.append(f"\n{f.path}:\n```\n{f.content[:MAX_REVIEWED_CHARS]}\n```")
        elif execution_result.code:
            parts.append(f"Code:\n```\n{execution_result.code[:MAX_REVIEWED_CHARS]}\n```")

        if execution_result.explanation:
            parts.append(f"Explanation:\n{execution_result.explanation[:MAX_REVIEWED_CHARS]}")

        if plan is not None:
            if plan.quality_criteria:
                parts.append("\nQuality Criteria:")
                parts.extend(f"{i}. {c}" for i, c in enumerate(plan.quality_criteria, 1))
            if plan.review_checklist:
                parts.append("\nReview Checklist:")
                parts.extend(f"{i}. {c}" for i, c in enumerate(plan.review_checklist, 1))

        parts.append(
            "\nPlease provide a quality score between 0 and 1, every issue with its severity, "
            "suggestions, and an improved version if one is needed."
        )
        return "\n".join(parts)

    @staticmethod
    def basic_review() -> ReviewResult:
        return ReviewResult(
            quality_score=BASIC_REVIEW_SCORE,
            suggestions=["Review completed with basic checks"],
        )
