"""Executor agent role implementation."""
import asyncio
import logging
import time

from forge.agents.base import REVISION_FEEDBACK_KEY, BaseAgent
from forge.agents.parsing import decode_artifact
from forge.agents.prompts import BUILDER_SYSTEM_PROMPT, TUTOR_SYSTEM_PROMPT
from forge.llm.client import BackendError
from forge.orchestration.models import (
    EnhancedPlan,
    ExecutionMetadata,
    ExecutionResult,
    WorkflowContext,
)

logger = logging.getLogger(__name__)

BUILDER_ERROR_CODE = "// Error: Failed to generate code. Please try again."
TUTOR_ERROR_EXPLANATION = (
    "I apologize, but I encountered an error while processing your request. "
    "Please try rephrasing your question or try again."
)


class ExecutorAgent(BaseAgent):
    """Generate the artifact: code in builder mode, an explanation in tutor mode."""

    @property
    def role_name(self) -> str:
        return "executor"

    @property
    def goal(self) -> str:
        return "Implement tasks correctly and efficiently"

    async def run(self, context: WorkflowContext, plan: EnhancedPlan | None = None) -> ExecutionResult:
        """Produce an artifact. Backend failures give an error artifact instead of raising."""
        start = time.monotonic()
        prompt = self.execution_prompt(context, plan)
        base = BUILDER_SYSTEM_PROMPT if context.mode == "builder" else TUTOR_SYSTEM_PROMPT

        try:
            response = await self._call_llm(prompt, self.system_prompt(base, context), context)
        except asyncio.TimeoutError:
            logger.warning(f"Executor timed out after {self.timeout}s")
            return self.error_result(context, f"Timed out after {self.timeout}s", time.monotonic() - start)
        except BackendError as e:
            logger.warning(f"Executor failed: {e}")
            return self.error_result(context, str(e), time.monotonic() - start)

        artifact = decode_artifact(response.content)
        result = ExecutionResult(
            code=artifact.content,
            files=artifact.files,
            entry=artifact.entry,
            metadata=ExecutionMetadata(
                tokens_used=response.tokens_used,
                execution_time=time.monotonic() - start,
            ),
        )

        if context.mode == "tutor":
            result.explanation = result.code or response.content
            result.code = None

        logger.info(
            f"Execution completed in {result.metadata.execution_time:.2f}s "
            f"(code={bool(result.code)}, files={len(result.files)}, explanation={bool(result.explanation)})"
        )
        return result

    def execution_prompt(self, context: WorkflowContext, plan: EnhancedPlan | None) -> str:
        """Plan rendered as steps and criteria, else the raw prompt, plus any revision feedback."""
        if plan is not None:
            lines = ["Execute the following plan:", "", f"Original Request: {plan.prompt}", "", "Execution Steps:"]
            for index, step in enumerate(plan.execution_steps, 1):
                lines.append(f"{index}. {step.action}")
                if step.expected_output:
                    lines.append(f"   Expected: {step.expected_output}")
            lines.append("")
            lines.append("Quality Criteria:")
            lines.extend(f"{index}. {c}" for index, c in enumerate(plan.quality_criteria, 1))
            lines.append("")
            lines.append("Please generate the code following these steps and meeting all quality criteria.")
            prompt = "\n".join(lines)
        else:
            prompt = context.prompt

        feedback = context.metadata.get(REVISION_FEEDBACK_KEY)
        if feedback:
            prompt = f"{prompt}\n\n{feedback}"
        return prompt

    @staticmethod
    def error_result(context: WorkflowContext, error: str, elapsed: float) -> ExecutionResult:
        builder = context.mode == "builder"
        return ExecutionResult(
            code=BUILDER_ERROR_CODE if builder else None,
            explanation=None if builder else TUTOR_ERROR_EXPLANATION,
            metadata=ExecutionMetadata(tokens_used=0, execution_time=elapsed, quality_score=0.0),
            error=error,
        )
