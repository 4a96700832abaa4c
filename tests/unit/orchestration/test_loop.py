"""Tests for loop counters and budgets"""
import dataclasses

import pytest

from forge.orchestration.loop import LoopState, StopReason, budget_stop
from forge.orchestration.result import Err, Ok


def test_begin_attempt_counts_both():
    state = LoopState().begin_attempt().begin_attempt()

    assert state.execution_attempts == 2
    assert state.total_attempts == 2


def test_after_revision_resets_execution_attempts_only():
    state = LoopState().begin_attempt().begin_attempt().count_revision().after_revision()

    assert state.execution_attempts == 0
    assert state.revision_attempts == 1
    assert state.total_attempts == 2


def test_loop_state_is_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        LoopState().execution_attempts = 3


def test_within_budget():
    assert budget_stop(LoopState(1, 0, 1), max_retries=1, max_revisions=1) is None
    assert budget_stop(LoopState(2, 1, 4), max_retries=1, max_revisions=1) is None


def test_retry_budget():
    assert budget_stop(LoopState(3, 0, 3), max_retries=1, max_revisions=1) == StopReason.RETRY_BUDGET


def test_revision_budget():
    assert budget_stop(LoopState(1, 2, 3), max_retries=1, max_revisions=1) == StopReason.REVISION_BUDGET


def test_circuit_breaker_wins():
    state = LoopState(execution_attempts=5, revision_attempts=50, total_attempts=11)

    assert budget_stop(state, max_retries=1, max_revisions=1) == StopReason.CIRCUIT_BREAKER
    assert budget_stop(LoopState(1, 0, 10), max_retries=100, max_revisions=100) is None


def test_result_values():
    assert Ok(3).ok and Ok(3).value == 3
    err = Err(ValueError("bad"))
    assert not err.ok
    assert isinstance(err.error, ValueError)
