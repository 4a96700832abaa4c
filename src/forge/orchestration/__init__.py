"""Workflow data model, state machine and loop control.

The orchestrator itself lives in ``forge.orchestration.orchestrator``.
"""
from forge.orchestration.loop import LoopState, StopReason, budget_stop
from forge.orchestration.models import (
    WorkflowContext,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)
from forge.orchestration.result import Err, Ok, Result
from forge.orchestration.state_machine import TRANSITIONS, StateMachine

__all__ = [
    "Err",
    "LoopState",
    "Ok",
    "Result",
    "StateMachine",
    "StopReason",
    "TRANSITIONS",
    "WorkflowContext",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "budget_stop",
]
