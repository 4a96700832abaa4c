"""Interprets a reviewer verdict as accept, revise or reject."""
from dataclasses import dataclass, field
from typing import Literal

from forge.analysis.intent import IntentAnalysis
from forge.engines.profile import UserProfile
from forge.orchestration.models import ExecutionResult, ReviewResult

NextAction = Literal["accept", "revise", "reject"]

# Many-component requests must clear the threshold by this margin
COMPONENT_HEAVY_MARGIN = 0.1


@dataclass(frozen=True)
class ReviewDecision:
    approved: bool
    rejected: bool
    needs_revision: bool
    quality_score: float
    confidence: float
    next_action: NextAction
    revision_reason: str | None = None
    recommendations: tuple[str, ...] = field(default_factory=tuple)


class ReviewDecisionEngine:
    """Stateless; one instance can serve every request."""

    def make_decision(
        self,
        review: ReviewResult,
        execution_result: ExecutionResult,
        intent: IntentAnalysis,
        profile: UserProfile | None,
        threshold: float,
    ) -> ReviewDecision:
        score = review.quality_score
        rejected = review.rejected
        needs_revision = self._should_revise(review, score, threshold, intent)

        if rejected:
            next_action: NextAction = "reject"
        elif needs_revision:
            next_action = "revise"
        else:
            next_action = "accept"

        return ReviewDecision(
            approved=not rejected and not needs_revision and score >= threshold,
            rejected=rejected,
            needs_revision=needs_revision,
            quality_score=score,
            confidence=self._confidence(review, execution_result, intent),
            next_action=next_action,
            revision_reason=review.rejection_reason or ("Quality below threshold" if needs_revision else None),
            recommendations=tuple(self._recommendations(review, execution_result, intent)),
        )

    def _should_revise(
        self, review: ReviewResult, score: float, threshold: float, intent: IntentAnalysis
    ) -> bool:
        if review.rejected or score < threshold:
            return True
        if review.count("error") > 0:
            return True
        if len(intent.requirements.components) > 3 and score < threshold + COMPONENT_HEAVY_MARGIN:
            return True
        return False

    def _confidence(
        self, review: ReviewResult, execution_result: ExecutionResult, intent: IntentAnalysis
    ) -> float:
        confidence = 0.5
        if review.issues:
            confidence += 0.2
        if review.suggestions:
            confidence += 0.1
        if execution_result.metadata.quality_score is not None:
            confidence += 0.1
        confidence += intent.confidence * 0.1
        return round(min(1.0, confidence), 3)

    def _recommendations(
        self, review: ReviewResult, execution_result: ExecutionResult, intent: IntentAnalysis
    ) -> list[str]:
        recommendations = list(review.suggestions)

        errors = review.count("error")
        if errors:
            recommendations.append(f"Fix {errors} critical error(s)")
        warnings = review.count("warning")
        if warnings:
            recommendations.append(f"Address {warnings} warning(s)")

        code = execution_result.code or ""
        missing = [c for c in intent.requirements.components if c not in code.lower()]
        if missing:
            recommendations.append(f"Add missing components: {', '.join(missing)}")

        return recommendations

    @staticmethod
    def should_use_improved_version(review: ReviewResult, threshold: float) -> bool:
        """Reviewer supplied a replacement and the original scored below threshold."""
        return bool(review.improved_code or review.improved_explanation) and review.quality_score < threshold

    @staticmethod
    def improved_version(review: ReviewResult) -> str | None:
        return review.improved_code or review.improved_explanation
