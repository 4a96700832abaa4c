"""Workflow orchestrator: runs one request through the agent pipeline."""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import replace
from typing import Any

from forge.agents.base import AGENT_CONTEXT_KEY, REVISION_FEEDBACK_KEY, AgentContext
from forge.agents.factory import AgentFactory, AgentTeam
from forge.analysis.intent import IntentAnalysis, IntentAnalyzer
from forge.analysis.normalizer import NormalizedInput, normalize
from forge.config.manager import ConfigManager
from forge.config.schema import WorkflowConfig
from forge.engines.agent_memory import AgentMemoryEngine
from forge.engines.context import ContextAwarenessEngine
from forge.engines.decision import PLANNER, REVIEWER, DecisionEngine, WorkflowDecision
from forge.engines.memory import MemoryEngine
from forge.engines.profile import UserProfile, UserProfileEngine
from forge.engines.review_decision import ReviewDecision, ReviewDecisionEngine
from forge.llm.client import LLMClient, LLMClientFactory
from forge.llm.retry import ResilientLLM, RetryPolicy
from forge.orchestration.loop import LoopState, StopReason, budget_stop
from forge.orchestration.models import (
    EnhancedPlan,
    ExecutionResult,
    PreprocessedInput,
    ReviewResult,
    SelfReflectionResult,
    WorkflowContext,
    WorkflowMetadata,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)
from forge.orchestration.result import Err, Ok, Result
from forge.orchestration.state_machine import StateMachine
from forge.storage.store import MemoryStore, create_store

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def revision_feedback(attempt: int, verdict: ReviewDecision) -> str:
    """Feedback block appended to the executor prompt on the next attempt."""
    lines = [f"[REVISION FEEDBACK - Attempt {attempt}]", verdict.revision_reason or "Quality below threshold"]
    if verdict.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"- {r}" for r in verdict.recommendations)
    lines.append("")
    lines.append("Please address these issues.")
    return "\n".join(lines)


class WorkflowOrchestrator:
    """Sequences analysis, planning and the execute/review/revise loop.

    One orchestrator can serve many concurrent requests. Per-request state
    (state machine, loop counters, plan, artifacts) lives in
    ``execute_workflow``; the only shared mutable piece is the agent factory
    cache. Memory saves run as background tasks; ``drain()`` awaits them.
    """

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        llm_client: LLMClient | None = None,
        store: MemoryStore | None = _UNSET,
        agent_factory: AgentFactory | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or WorkflowConfig.default()
        self._sleep = sleep

        if agent_factory is None:
            client = llm_client or LLMClientFactory.create(self.config)
            if client is None:
                raise ValueError(f"No LLM client available for backend provider {self.config.backend.provider}")
            llm = ResilientLLM(client, RetryPolicy.from_config(self.config.backend), sleep=sleep)
            agent_factory = AgentFactory(llm, self.config)
        self.agent_factory = agent_factory

        self.store = create_store(self.config.memory) if store is _UNSET else store

        self.intent_analyzer = IntentAnalyzer(self.config.heuristics)
        self.profile_engine = UserProfileEngine(self.store)
        self.agent_memory = AgentMemoryEngine(self.store, self.config.memory)
        self.context_engine = ContextAwarenessEngine(self.agent_memory, self.store)
        self.decision_engine = DecisionEngine(self.config)
        self.review_decision_engine = ReviewDecisionEngine()
        self.memory_engine = MemoryEngine(self.store, self.config.memory)

        self._background: set[asyncio.Task] = set()

    async def execute_workflow(self, context: WorkflowContext) -> WorkflowResult:
        """Run the full pipeline. Always returns exactly one result."""
        start = time.monotonic()
        machine = self._state_machine(context)
        stages: list[str] = []
        loop_state = LoopState()
        logger.info(
            f"Workflow {context.session_id} started: mode={context.mode} "
            f"provider={context.provider or self.config.backend.provider} user={context.user_id}"
        )

        try:
            self._status(context, WorkflowStatus.PREPROCESSING, "Analyzing request...")
            normalized = normalize(context.prompt, context.images)
            stages.append("normalize")

            intent = self.intent_analyzer.analyze(normalized, context.history, context.framework)
            stages.append("intent_analyze")

            profile = await self.profile_engine.load_profile(context.user_id, context.history)
            stages.append("user_profile")

            awareness = await self.context_engine.build_context(
                context.user_id,
                context.session_id,
                machine.state,
                context.history,
                intent,
                task=context.prompt[:100],
                user_name=context.user_name,
                user_email=context.user_email,
            )
            stages.append("context_awareness")

            self._status(context, WorkflowStatus.ROUTING, "Deciding workflow...")
            decision = self.decision_engine.make_decision(intent, profile, context.mode)
            stages.append("decision")

            memories = await self.memory_engine.retrieve_relevant_memory(context, intent)
            personalization = self.profile_engine.personalized_context(profile, intent)
            context.metadata[AGENT_CONTEXT_KEY] = AgentContext(
                intent=intent,
                profile=profile,
                awareness=awareness,
                memory_context=MemoryEngine.memory_context(memories),
                personalization=personalization,
            )
            team = self.agent_factory.create_team(decision.routing)

            plan = await self._plan(context, machine, team, decision, normalized, intent, personalization, stages)

            result, review, loop_state, stop_reason = await self._execute_loop(
                context, machine, team, decision, intent, profile, plan, stages
            )

            machine.transition(
                WorkflowState.DONE,
                {
                    "execution_attempts": loop_state.execution_attempts,
                    "revision_attempts": loop_state.revision_attempts,
                    "stop_reason": stop_reason.value,
                },
            )

            workflow_result = self._build_result(
                context, result, review, plan, stages, loop_state, stop_reason, start
            )
            logger.info(
                f"Workflow {context.session_id} done: stop={stop_reason.value} "
                f"quality={workflow_result.metadata.quality_score} stages={stages}"
            )

            self._status(context, WorkflowStatus.SAVING, "Saving results...")
            if self.agent_memory.enabled:
                reflection = await self._reflect(context, team, result, review, plan, workflow_result, intent)
                if isinstance(reflection, Ok):
                    self._schedule(
                        self.agent_memory.save_agent_memory(context, intent, reflection.value), "agent memory"
                    )
                else:
                    logger.warning(f"Self-reflection failed: {reflection.error}")
            self._schedule(self.memory_engine.save_workflow_result(context, workflow_result, intent), "memory")

            self._status(context, WorkflowStatus.COMPLETED, "Workflow completed")
            return workflow_result

        except Exception as e:
            logger.error(f"Workflow {context.session_id} failed: {e}", exc_info=True)
            if not machine.transition(WorkflowState.ERROR, {"error": str(e), "stages": list(stages)}):
                logger.warning(f"Reporting ERROR from state {machine.state.value}")
            self._status(context, WorkflowStatus.ERROR, str(e))
            return self._error_result(context, e, stages, loop_state, start)

    async def _plan(
        self,
        context: WorkflowContext,
        machine: StateMachine,
        team: AgentTeam,
        decision: WorkflowDecision,
        normalized: NormalizedInput,
        intent: IntentAnalysis,
        personalization: dict,
        stages: list[str],
    ) -> EnhancedPlan | None:
        if decision.skips(PLANNER):
            logger.debug("Planner skipped")
            return None

        machine.transition(WorkflowState.PLANNING)
        self._advance_awareness(context, WorkflowState.PLANNING, "planning")
        self._status(context, WorkflowStatus.PLANNING, "Creating execution plan...")

        requirements = intent.requirements
        preprocessed = PreprocessedInput(
            cleaned_prompt=normalized.cleaned,
            intent=intent.primary_intent,
            has_code=intent.context.has_code,
            has_images=intent.context.has_images,
            framework=requirements.framework or personalization.get("framework"),
            complexity=intent.complexity,
            metadata={
                "components": list(requirements.components),
                "features": list(requirements.features),
                "style": requirements.style or personalization.get("style"),
                "personalization": personalization,
            },
        )
        try:
            plan = await team.planner.run(context, context.prompt, preprocessed)
        except Exception as e:
            logger.warning(f"Planning failed, continuing without a plan: {e}")
            return None

        stages.append("plan")
        return plan

    async def _execute_loop(
        self,
        context: WorkflowContext,
        machine: StateMachine,
        team: AgentTeam,
        decision: WorkflowDecision,
        intent: IntentAnalysis,
        profile: UserProfile | None,
        plan: EnhancedPlan | None,
        stages: list[str],
    ) -> tuple[ExecutionResult, ReviewResult | None, LoopState, StopReason]:
        """Execute, review and revise until accepted or a budget runs out."""
        state = LoopState()
        result: ExecutionResult | None = None
        review: ReviewResult | None = None
        tokens = 0
        threshold = decision.quality_threshold
        review_enabled = not decision.skips(REVIEWER)

        while True:
            candidate = state.begin_attempt()
            stop = budget_stop(candidate, decision.max_retries, decision.max_revisions)
            if stop is not None:
                logger.warning(
                    f"Stopping loop ({stop.value}): executions={state.execution_attempts} "
                    f"revisions={state.revision_attempts} total={state.total_attempts}"
                )
                break
            state = candidate

            if machine.state != WorkflowState.EXECUTING:
                machine.transition(WorkflowState.EXECUTING, {"attempt": state.execution_attempts})
            self._advance_awareness(context, WorkflowState.EXECUTING, "executing")
            self._status(context, WorkflowStatus.EXECUTING, f"Generating (attempt {state.execution_attempts})...")

            result = await team.executor.run(context, plan)
            tokens += result.metadata.tokens_used
            if "execute" not in stages:
                stages.append("execute")

            if result.failed and context.mode == "builder" and state.execution_attempts < decision.max_retries + 1:
                logger.warning(f"Execution attempt {state.execution_attempts} failed: {result.error}, retrying")
                await self._sleep(self.config.retry.retry_delay)
                continue

            quality = result.metadata.quality_score
            if not review_enabled or not (
                self.config.stages.force_review or quality is None or quality < threshold
            ):
                stop = StopReason.REVIEW_SKIPPED
                break

            machine.transition(WorkflowState.REVIEWING)
            self._advance_awareness(context, WorkflowState.REVIEWING, "reviewing")
            self._status(context, WorkflowStatus.REVIEWING, "Reviewing output...")
            try:
                review = await team.reviewer.run(context, result, plan)
            except Exception as e:
                logger.warning(f"Review failed, accepting unreviewed result: {e}")
                stop = StopReason.REVIEW_FAILED
                break
            if "review" not in stages:
                stages.append("review")

            verdict = self.review_decision_engine.make_decision(review, result, intent, profile, threshold)
            if not (verdict.needs_revision or verdict.rejected):
                self._apply_improved(result, review, threshold)
                result.metadata.quality_score = review.quality_score
                stop = StopReason.ACCEPTED
                break

            state = state.count_revision()
            if state.revision_attempts > decision.max_revisions:
                logger.info(f"Revision budget spent, keeping result with score {review.quality_score}")
                result.metadata.quality_score = review.quality_score
                stop = StopReason.REVISION_BUDGET
                break

            machine.transition(
                WorkflowState.REVISING,
                {"revision": state.revision_attempts, "reason": verdict.revision_reason},
            )
            self._status(context, WorkflowStatus.REVISING, f"Revising (attempt {state.revision_attempts})...")
            self._apply_improved(result, review, threshold)
            context.metadata[REVISION_FEEDBACK_KEY] = revision_feedback(state.revision_attempts, verdict)
            state = state.after_revision()
            await self._sleep(self.config.retry.revision_delay)

        if result is None:
            raise RuntimeError(f"Execution loop stopped ({stop.value}) before the first attempt")
        result.metadata.tokens_used = tokens
        return result, review, state, stop

    def _apply_improved(self, result: ExecutionResult, review: ReviewResult, threshold: float) -> None:
        if not ReviewDecisionEngine.should_use_improved_version(review, threshold):
            return
        if review.improved_code:
            result.code = review.improved_code
            logger.debug("Applied reviewer's improved code")
        elif review.improved_explanation:
            result.explanation = review.improved_explanation
            logger.debug("Applied reviewer's improved explanation")

    async def _reflect(
        self,
        context: WorkflowContext,
        team: AgentTeam,
        result: ExecutionResult,
        review: ReviewResult | None,
        plan: EnhancedPlan | None,
        workflow_result: WorkflowResult,
        intent: IntentAnalysis,
    ) -> Result[SelfReflectionResult, Exception]:
        try:
            reflection = await team.reflection.run(context, result, review, plan, workflow_result, intent)
        except Exception as e:
            return Err(e)
        return Ok(reflection)

    def _build_result(
        self,
        context: WorkflowContext,
        result: ExecutionResult,
        review: ReviewResult | None,
        plan: EnhancedPlan | None,
        stages: list[str],
        loop_state: LoopState,
        stop_reason: StopReason,
        start: float,
    ) -> WorkflowResult:
        if context.mode == "builder":
            response = result.code or result.explanation or ""
        else:
            response = result.explanation or result.code or ""

        quality = result.metadata.quality_score
        if quality is None and review is not None:
            quality = review.quality_score

        return WorkflowResult(
            response=response,
            code=result.code,
            explanation=result.explanation,
            files=result.files,
            plan=plan,
            review=review,
            metadata=WorkflowMetadata(
                tokens_used=result.metadata.tokens_used,
                execution_time=time.monotonic() - start,
                quality_score=quality,
                stages_executed=list(stages),
                execution_attempts=loop_state.execution_attempts,
                revision_attempts=loop_state.revision_attempts,
                final_state=WorkflowState.DONE,
                stop_reason=stop_reason.value,
                error_message=result.error,
            ),
        )

    def _error_result(
        self,
        context: WorkflowContext,
        error: Exception,
        stages: list[str],
        loop_state: LoopState,
        start: float,
    ) -> WorkflowResult:
        completed = ", ".join(stages) or "none"
        if context.mode == "builder":
            response = (
                f"// Error: {error}\n"
                "// Please try again or switch provider.\n"
                f"// Stages completed: {completed}"
            )
            code = response
        else:
            response = (
                f"I'm sorry, something went wrong while processing your request: {error}\n\n"
                f"Please try again or switch provider. Stages completed: {completed}"
            )
            code = None

        return WorkflowResult(
            response=response,
            code=code,
            explanation=None if code else response,
            metadata=WorkflowMetadata(
                execution_time=time.monotonic() - start,
                stages_executed=list(stages),
                execution_attempts=loop_state.execution_attempts,
                revision_attempts=loop_state.revision_attempts,
                final_state=WorkflowState.ERROR,
                error_message=str(error),
            ),
        )

    def _state_machine(self, context: WorkflowContext) -> StateMachine:
        machine = StateMachine()
        if context.on_state_change is not None:
            for state in WorkflowState:
                machine.on(state, context.on_state_change)
        machine.start({"session_id": context.session_id})
        return machine

    def _advance_awareness(self, context: WorkflowContext, state: WorkflowState, task: str) -> None:
        data = context.metadata.get(AGENT_CONTEXT_KEY)
        if isinstance(data, AgentContext) and data.awareness is not None:
            awareness = ContextAwarenessEngine.update_context(data.awareness, state, task)
            context.metadata[AGENT_CONTEXT_KEY] = replace(data, awareness=awareness)

    def _status(self, context: WorkflowContext, status: WorkflowStatus, message: str) -> None:
        if self.config.logging.log_stages:
            logger.info(f"[{context.session_id}] {status.value}: {message}")
        if context.on_status_update is None:
            return
        try:
            context.on_status_update(status, message)
        except Exception as e:
            logger.error(f"Status callback failed: {e}")

    def _schedule(self, coro: Coroutine[Any, Any, Result], label: str) -> None:
        """Run a save in the background. Failures are logged and dropped."""
        task = asyncio.create_task(self._run_side_effect(coro, label))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_side_effect(self, coro: Coroutine[Any, Any, Result], label: str) -> None:
        try:
            outcome = await coro
        except Exception as e:
            logger.error(f"Saving {label} failed: {e}")
            return
        if isinstance(outcome, Err):
            logger.warning(f"Saving {label} failed: {outcome.error}")

    async def drain(self) -> None:
        """Wait for pending background saves."""
        while self._background:
            await asyncio.gather(*list(self._background))


async def execute_workflow(
    context: WorkflowContext,
    config: WorkflowConfig | None = None,
    llm_client: LLMClient | None = None,
    store: MemoryStore | None = _UNSET,
) -> WorkflowResult:
    """Run one request on a fresh orchestrator and wait for its saves."""
    orchestrator = WorkflowOrchestrator(
        config or ConfigManager.get_config(), llm_client=llm_client, store=store
    )
    result = await orchestrator.execute_workflow(context)
    await orchestrator.drain()
    return result
