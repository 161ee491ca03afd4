"""
Intake State Machine

Tracks where the current upload or approval is:

    idle → uploading → ocr → detecting → mapping → voucher_creation → pending_review
    posting → posted

RULES:
1. Stages only move forward, one step at a time
2. `uploading` and `posting` start a new run and may be entered from
   any state
3. `error` may be entered from any in-flight state
4. reset() always returns to `idle`
5. A run superseded by a newer one no longer moves the machine

ocr/detecting/mapping/voucher_creation are progress markers for the UI.
They do not gate anything.
"""

from collections.abc import Callable
from typing import Optional

import structlog

from ledgerflow.models.records import IntakeState

logger = structlog.get_logger(__name__)

StateListener = Callable[[IntakeState, IntakeState], None]

ENTRY_STATES = frozenset({IntakeState.UPLOADING, IntakeState.POSTING})

IN_FLIGHT_STATES = frozenset({
    IntakeState.UPLOADING,
    IntakeState.OCR,
    IntakeState.DETECTING,
    IntakeState.MAPPING,
    IntakeState.VOUCHER_CREATION,
    IntakeState.POSTING,
})

FORWARD_TRANSITIONS: dict[IntakeState, IntakeState] = {
    IntakeState.UPLOADING: IntakeState.OCR,
    IntakeState.OCR: IntakeState.DETECTING,
    IntakeState.DETECTING: IntakeState.MAPPING,
    IntakeState.MAPPING: IntakeState.VOUCHER_CREATION,
    IntakeState.VOUCHER_CREATION: IntakeState.PENDING_REVIEW,
    IntakeState.POSTING: IntakeState.POSTED,
}

# Stages walked after the webhook answers, in order
PROCESSING_STAGES = (
    IntakeState.OCR,
    IntakeState.DETECTING,
    IntakeState.MAPPING,
    IntakeState.VOUCHER_CREATION,
)


class InvalidTransitionError(Exception):
    """A transition the lifecycle does not allow."""

    def __init__(self, current: IntakeState, target: IntakeState):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.value} to {target.value}")


def can_transition(current: IntakeState, target: IntakeState) -> bool:
    if target in ENTRY_STATES:
        return True
    if target == IntakeState.ERROR:
        return current in IN_FLIGHT_STATES
    if target == IntakeState.IDLE:
        return True
    return FORWARD_TRANSITIONS.get(current) == target


class IntakeStateMachine:
    """
    Current intake state plus listeners notified on every change.

    Each upload or approval is a run. Entering `uploading` or `posting`
    starts a new run and supersedes the previous one; advance() and fail()
    calls from a superseded run are skipped instead of raising, so an
    overlapping upload still completes in the background.
    """

    def __init__(self, initial: IntakeState = IntakeState.IDLE):
        self._state = initial
        self._run = 0
        self._listeners: list[StateListener] = []
        self.last_error: Optional[str] = None

    @property
    def state(self) -> IntakeState:
        return self._state

    @property
    def run(self) -> int:
        """Id of the current run."""
        return self._run

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with (previous, current).

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def transition(self, target: IntakeState) -> None:
        """
        Move to `target`.

        Raises:
            InvalidTransitionError: If the lifecycle forbids the move
        """
        if not can_transition(self._state, target):
            raise InvalidTransitionError(self._state, target)

        previous = self._state
        self._state = target
        if target in ENTRY_STATES:
            self._run += 1
            self.last_error = None
        logger.debug("intake_transition", previous=previous.value, current=target.value)

        for listener in list(self._listeners):
            listener(previous, target)

    def begin(self, target: IntakeState) -> int:
        """
        Start a new run in `uploading` or `posting`.

        Returns:
            The run id to pass to advance() and fail()
        """
        if target not in ENTRY_STATES:
            raise InvalidTransitionError(self._state, target)
        self.transition(target)
        return self._run

    def is_current(self, run: int) -> bool:
        return run == self._run

    def advance(self, run: int, target: IntakeState) -> bool:
        """
        Move `run` to `target` if it is still the current run.

        Returns:
            False when the run was superseded and nothing changed
        """
        if not self.is_current(run):
            logger.debug(
                "intake_run_superseded",
                run=run,
                current_run=self._run,
                target=target.value,
            )
            return False
        self.transition(target)
        return True

    def fail(self, message: str, run: Optional[int] = None) -> bool:
        """Enter `error`, remembering why. Skipped for a superseded run."""
        if run is not None and not self.is_current(run):
            logger.debug("intake_run_superseded", run=run, current_run=self._run, error=message)
            return False
        self.transition(IntakeState.ERROR)
        self.last_error = message
        return True

    def reset(self) -> None:
        self.transition(IntakeState.IDLE)
        self._run += 1
        self.last_error = None
