"""
Batch execution state machine.

Guarded transitions between the execution states of one batch, with
observer callbacks on every transition. Independent of any UI loop so the
lifecycle can be driven and asserted directly.

    idle -> building -> review -> signing -> pending -> confirmed
                |          |         |          |
                v          v         v          v
              failed      idle     failed     failed

    failed -> review (retry), failed -> idle, confirmed -> idle (reset)
"""

import logging
from typing import Callable, Dict, FrozenSet, List

from ..schemas.bases import BatchState
from .exceptions import InvalidTransition

logger = logging.getLogger(__name__)

TransitionObserver = Callable[[BatchState, BatchState], None]


TRANSITIONS: Dict[BatchState, FrozenSet[BatchState]] = {
    BatchState.IDLE: frozenset({BatchState.BUILDING}),
    BatchState.BUILDING: frozenset({BatchState.REVIEW, BatchState.FAILED}),
    BatchState.REVIEW: frozenset({BatchState.SIGNING, BatchState.IDLE}),
    BatchState.SIGNING: frozenset({BatchState.PENDING, BatchState.FAILED}),
    BatchState.PENDING: frozenset({BatchState.CONFIRMED, BatchState.FAILED}),
    BatchState.CONFIRMED: frozenset({BatchState.IDLE}),
    BatchState.FAILED: frozenset({BatchState.REVIEW, BatchState.IDLE}),
}


class BatchStateMachine:
    """
    Tracks the state of one batch.

    ``detached`` is set when the caller stops watching a pending batch; the
    submitted transactions are unaffected and the state keeps advancing.
    """

    def __init__(self, initial: BatchState = BatchState.IDLE) -> None:
        self._state = BatchState(initial)
        self._observers: List[TransitionObserver] = []
        self.detached = False
        self.history: List[BatchState] = [self._state]

    @property
    def state(self) -> BatchState:
        return self._state

    def subscribe(self, observer: TransitionObserver) -> None:
        """
        Register a callback invoked as ``observer(previous, current)`` after
        every transition.

        Raises:
            TypeError: If observer is not callable.
        """
        if not callable(observer):
            raise TypeError(f"Observer must be callable, got {type(observer).__name__}")
        self._observers.append(observer)

    def can_transition(self, target: BatchState) -> bool:
        return BatchState(target) in TRANSITIONS[self._state]

    def transition(self, target: BatchState) -> BatchState:
        """
        Move to ``target``.

        Raises:
            InvalidTransition: If ``target`` is not reachable from the
                current state.
        """
        target = BatchState(target)
        if not self.can_transition(target):
            raise InvalidTransition(
                f"Cannot transition from {self._state.value} to {target.value}",
                current_state=self._state,
                target_state=target,
            )

        previous = self._state
        self._state = target
        self.history.append(target)
        if target == BatchState.IDLE:
            self.detached = False
        logger.debug(f"Batch state {previous.value} -> {target.value}")

        for observer in self._observers:
            observer(previous, target)
        return target

    def cancel(self) -> BatchState:
        """
        Cancel at the caller's request.

        - review: abandoned, back to idle
        - pending: detaches only; the state is unchanged
        - any other state: cannot be cancelled

        Raises:
            InvalidTransition: When cancelling is not allowed, notably while
                a signature is being requested.
        """
        if self._state == BatchState.REVIEW:
            return self.transition(BatchState.IDLE)
        if self._state == BatchState.PENDING:
            self.detached = True
            return self._state
        raise InvalidTransition(
            f"Cannot cancel while {self._state.value}",
            current_state=self._state,
        )

    def reset(self) -> BatchState:
        """Return to idle from a terminal state."""
        return self.transition(BatchState.IDLE)
