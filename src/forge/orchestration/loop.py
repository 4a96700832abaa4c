"""Counters and budget checks for the execute/review/revise loop."""
from dataclasses import dataclass, replace
from enum import Enum

from forge.config.defaults import MAX_TOTAL_ATTEMPTS


class StopReason(str, Enum):
    """Why the loop ended"""
    ACCEPTED = "accepted"
    REVIEW_SKIPPED = "review_skipped"
    REVIEW_FAILED = "review_failed"
    RETRY_BUDGET = "retry_budget"
    REVISION_BUDGET = "revision_budget"
    CIRCUIT_BREAKER = "circuit_breaker"


@dataclass(frozen=True)
class LoopState:
    """Attempt counters for one request.

    execution_attempts counts executions since the last revision.
    revision_attempts and total_attempts never decrease.
    """
    execution_attempts: int = 0
    revision_attempts: int = 0
    total_attempts: int = 0

    def begin_attempt(self) -> "LoopState":
        return replace(
            self,
            execution_attempts=self.execution_attempts + 1,
            total_attempts=self.total_attempts + 1,
        )

    def count_revision(self) -> "LoopState":
        return replace(self, revision_attempts=self.revision_attempts + 1)

    def after_revision(self) -> "LoopState":
        return replace(self, execution_attempts=0)


def budget_stop(
    state: LoopState,
    max_retries: int,
    max_revisions: int,
    max_total: int = MAX_TOTAL_ATTEMPTS,
) -> StopReason | None:
    """Check a candidate state against the loop budgets.

    The circuit breaker is checked first so it wins over any configured
    per-stage budget.
    """
    if state.total_attempts > max_total:
        return StopReason.CIRCUIT_BREAKER
    if state.execution_attempts > max_retries + 1:
        return StopReason.RETRY_BUDGET
    if state.revision_attempts > max_revisions:
        return StopReason.REVISION_BUDGET
    return None
