"""Upload lifecycle tracking."""

from ledgerflow.intake.state_machine import (
    PROCESSING_STAGES,
    IntakeStateMachine,
    InvalidTransitionError,
    can_transition,
)

__all__ = [
    "PROCESSING_STAGES",
    "IntakeStateMachine",
    "InvalidTransitionError",
    "can_transition",
]
