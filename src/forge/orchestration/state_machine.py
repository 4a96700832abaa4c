"""Finite state machine gating pipeline transitions."""
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from forge.orchestration.models import WorkflowState

logger = logging.getLogger(__name__)

S = WorkflowState

TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    S.IDLE: frozenset({S.PLANNING, S.EXECUTING}),
    S.PLANNING: frozenset({S.EXECUTING, S.ERROR}),
    S.EXECUTING: frozenset({S.REVIEWING, S.REVISING, S.ERROR, S.DONE}),
    S.REVIEWING: frozenset({S.REVISING, S.DONE, S.ERROR}),
    S.REVISING: frozenset({S.EXECUTING, S.DONE, S.ERROR}),
    S.ERROR: frozenset({S.IDLE, S.DONE}),
    S.DONE: frozenset({S.IDLE}),
}

Listener = Callable[[WorkflowState, dict], None]


@dataclass
class StateTransition:
    """One accepted transition"""
    from_state: WorkflowState | None
    to_state: WorkflowState
    timestamp: datetime = field(default_factory=datetime.now)
    details: dict[str, Any] = field(default_factory=dict)


class StateMachine:
    """Tracks the current pipeline state for one request.

    Only edges in ``TRANSITIONS`` are accepted. A rejected transition is
    logged, returns False and leaves the state unchanged. Listeners are
    notified after an accepted transition; a failing listener is logged and
    does not affect the transition or other listeners.
    """

    def __init__(self, initial: WorkflowState = WorkflowState.IDLE):
        self._initial = initial
        self._state = initial
        self._history: list[StateTransition] = []
        self._listeners: dict[WorkflowState, list[Listener]] = {}

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        return list(self._history)

    def start(self, details: dict | None = None) -> None:
        """Announce the initial state to listeners and record it."""
        self._history.append(StateTransition(None, self._state, details=details or {}))
        self._notify(self._state, details or {})

    def can_transition(self, to: WorkflowState) -> bool:
        return to in TRANSITIONS.get(self._state, frozenset())

    def possible_next_states(self) -> list[WorkflowState]:
        return sorted(TRANSITIONS.get(self._state, frozenset()), key=lambda s: list(WorkflowState).index(s))

    def transition(self, to: WorkflowState, details: dict | None = None) -> bool:
        if not self.can_transition(to):
            logger.warning(f"Invalid state transition: {self._state.value} -> {to.value}")
            return False

        details = details or {}
        self._history.append(StateTransition(self._state, to, details=details))
        self._state = to
        self._notify(to, details)
        return True

    def on(self, state: WorkflowState, listener: Listener) -> Callable[[], None]:
        """Subscribe to entries into ``state``. Returns an unsubscribe callable."""
        self._listeners.setdefault(state, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(state, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        self._state = self._initial
        self._history.clear()

    def _notify(self, state: WorkflowState, details: dict) -> None:
        for listener in list(self._listeners.get(state, [])):
            try:
                listener(state, details)
            except Exception as e:
                logger.error(f"State listener for {state.value} failed: {e}")
