"""Turns intent, profile and mode into a workflow decision."""
import logging
from dataclasses import dataclass
from typing import Literal

from forge.analysis.intent import IntentAnalysis
from forge.config.schema import WorkflowConfig
from forge.engines.profile import UserProfile

logger = logging.getLogger(__name__)

RoutingComplexity = Literal["simple", "medium", "complex"]
Priority = Literal["low", "normal", "high"]

PLANNER = "planner"
REVIEWER = "reviewer"

MIN_THRESHOLD = 0.5
MAX_THRESHOLD = 0.9


@dataclass(frozen=True)
class RoutingDecision:
    """Model id per agent role"""
    planner: str
    executor: str
    reviewer: str
    reflection: str

    def for_role(self, role: str) -> str:
        return getattr(self, role)


@dataclass(frozen=True)
class WorkflowDecision:
    routing: RoutingDecision
    skip_stages: frozenset[str]
    quality_threshold: float
    max_retries: int
    max_revisions: int
    priority: Priority
    complexity: RoutingComplexity
    reasoning: tuple[str, ...] = ()

    def skips(self, stage: str) -> bool:
        return stage in self.skip_stages


def estimate_routing_complexity(intent: IntentAnalysis) -> RoutingComplexity:
    """Complexity from extracted requirements, used for routing and budgets."""
    components = len(intent.requirements.components)
    features = len(intent.requirements.features)
    has_code = intent.context.has_code
    has_images = intent.context.has_images

    if components > 3 or features > 2 or (has_code and has_images):
        return "complex"
    if components == 0 and features == 0 and not has_code and not has_images:
        return "simple"
    return "medium"


class DecisionEngine:
    """Applies the stage-skip rules and derives thresholds and budgets."""

    def __init__(self, config: WorkflowConfig):
        self.config = config

    def make_decision(
        self,
        intent: IntentAnalysis,
        profile: UserProfile | None,
        mode: str,
    ) -> WorkflowDecision:
        stages = self.config.stages
        complexity = estimate_routing_complexity(intent)
        reasoning = [f"Complexity: {complexity}", f"Intent: {intent.primary_intent}"]
        skip: set[str] = set()

        if not stages.enable_planner:
            skip.add(PLANNER)
            reasoning.append("Planner disabled in config")
        if not stages.enable_reviewer:
            skip.add(REVIEWER)
            reasoning.append("Reviewer disabled in config")

        # (a) simple requests need no plan
        if complexity == "simple" and stages.skip_planner_for_simple:
            skip.add(PLANNER)
            reasoning.append("Skipping planner for simple request")

        # (b) tutor mode
        if mode == "tutor":
            if intent.primary_intent in ("question", "explanation"):
                skip.add(PLANNER)
                reasoning.append("Skipping planner for tutor question")
            if stages.enable_reviewer:
                skip.discard(REVIEWER)
                reasoning.append("Tutor answers are always reviewed")

        if mode == "builder":
            # (c) complex builds always get a plan
            if complexity == "complex" and stages.enable_planner:
                skip.discard(PLANNER)
                reasoning.append("Complex build requires planning")
            # (d)
            if complexity == "simple" and stages.skip_reviewer_for_simple:
                skip.add(REVIEWER)
                reasoning.append("Skipping reviewer for simple build")

        # (e)
        if complexity == "complex" and stages.enable_reviewer:
            skip.discard(REVIEWER)
            reasoning.append("Complex request requires review")

        threshold = self._quality_threshold(complexity, profile)
        max_retries, max_revisions = self._budgets(complexity)

        if intent.primary_intent == "debug" or complexity == "complex":
            priority: Priority = "high"
        elif complexity == "simple":
            priority = "low"
        else:
            priority = "normal"

        decision = WorkflowDecision(
            routing=self._routing(profile),
            skip_stages=frozenset(skip),
            quality_threshold=threshold,
            max_retries=max_retries,
            max_revisions=max_revisions,
            priority=priority,
            complexity=complexity,
            reasoning=tuple(reasoning),
        )
        logger.info(
            f"Decision: complexity={complexity} skip={sorted(skip)} "
            f"threshold={threshold} retries={max_retries} revisions={max_revisions}"
        )
        return decision

    def _quality_threshold(self, complexity: RoutingComplexity, profile: UserProfile | None) -> float:
        threshold = self.config.quality.threshold
        if complexity == "complex":
            threshold = min(MAX_THRESHOLD, threshold + 0.1)
        elif complexity == "simple":
            threshold = max(MIN_THRESHOLD, threshold - 0.1)
        threshold = min(MAX_THRESHOLD, max(MIN_THRESHOLD, threshold))

        if profile is not None and profile.behavior.detail_level == "detailed":
            threshold = min(MAX_THRESHOLD, threshold + 0.05)

        return round(threshold, 2)

    def _budgets(self, complexity: RoutingComplexity) -> tuple[int, int]:
        retries = self.config.retry.max_retries
        revisions = self.config.retry.max_revisions
        if complexity == "complex":
            retries += 1
            revisions += 1
        elif complexity == "simple":
            retries = max(1, retries - 1)
        return retries, revisions

    def _routing(self, profile: UserProfile | None) -> RoutingDecision:
        models = self.config.models
        preferred = None
        if profile and profile.preferences and profile.preferences.default_provider:
            candidate = profile.preferences.default_provider
            if candidate in models.allowed_providers:
                preferred = candidate
            else:
                logger.debug(f"Ignoring unknown preferred provider {candidate}")

        return RoutingDecision(
            planner=preferred or models.planner,
            executor=models.executor,
            reviewer=preferred or models.reviewer,
            reflection=preferred or models.reflection,
        )
