"""Tests for the intake state machine."""

import pytest

from ledgerflow.intake import (
    PROCESSING_STAGES,
    IntakeStateMachine,
    InvalidTransitionError,
    can_transition,
)
from ledgerflow.models.records import IntakeState


def walk_upload(machine):
    machine.transition(IntakeState.UPLOADING)
    for stage in PROCESSING_STAGES:
        machine.transition(stage)
    machine.transition(IntakeState.PENDING_REVIEW)


class TestTransitions:
    """Tests for allowed and forbidden transitions."""

    def test_upload_path(self):
        """Test the full upload path in order."""
        machine = IntakeStateMachine()
        walk_upload(machine)
        assert machine.state == IntakeState.PENDING_REVIEW

    def test_posting_path(self):
        """Test approval from pending review."""
        machine = IntakeStateMachine(IntakeState.PENDING_REVIEW)
        machine.transition(IntakeState.POSTING)
        machine.transition(IntakeState.POSTED)
        assert machine.state == IntakeState.POSTED

    def test_skipping_a_stage(self):
        """Test stages cannot be skipped."""
        machine = IntakeStateMachine()
        machine.transition(IntakeState.UPLOADING)
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(IntakeState.MAPPING)
        assert exc_info.value.current == IntakeState.UPLOADING
        assert machine.state == IntakeState.UPLOADING

    def test_moving_backwards(self):
        """Test a stage cannot return to an earlier one."""
        machine = IntakeStateMachine()
        machine.transition(IntakeState.UPLOADING)
        machine.transition(IntakeState.OCR)
        with pytest.raises(InvalidTransitionError):
            machine.transition(IntakeState.OCR)

    @pytest.mark.parametrize("current", list(IntakeState))
    def test_entry_states_from_anywhere(self, current):
        """Test a new upload or approval can start from any state."""
        assert can_transition(current, IntakeState.UPLOADING)
        assert can_transition(current, IntakeState.POSTING)

    def test_error_only_while_in_flight(self):
        """Test error is reachable from in-flight states only."""
        assert can_transition(IntakeState.OCR, IntakeState.ERROR)
        assert can_transition(IntakeState.POSTING, IntakeState.ERROR)
        assert not can_transition(IntakeState.IDLE, IntakeState.ERROR)
        assert not can_transition(IntakeState.PENDING_REVIEW, IntakeState.ERROR)
        assert not can_transition(IntakeState.POSTED, IntakeState.ERROR)


class TestErrorsAndReset:
    """Tests for fail() and reset()."""

    def test_fail_records_message(self):
        """Test fail() enters error with a message."""
        machine = IntakeStateMachine()
        machine.transition(IntakeState.UPLOADING)
        machine.fail("Upload timed out")
        assert machine.state == IntakeState.ERROR
        assert machine.last_error == "Upload timed out"

    def test_new_upload_clears_error(self):
        """Test a new upload after an error clears the message."""
        machine = IntakeStateMachine()
        machine.transition(IntakeState.UPLOADING)
        machine.fail("boom")
        machine.transition(IntakeState.UPLOADING)
        assert machine.last_error is None

    def test_reset(self):
        """Test reset returns to idle from anywhere."""
        machine = IntakeStateMachine()
        walk_upload(machine)
        machine.reset()
        assert machine.state == IntakeState.IDLE


class TestRuns:
    """Tests for overlapping runs."""

    def test_begin_returns_new_run(self):
        """Test each upload or approval gets its own run."""
        machine = IntakeStateMachine()
        first = machine.begin(IntakeState.UPLOADING)
        second = machine.begin(IntakeState.POSTING)
        assert second != first
        assert machine.is_current(second)
        assert not machine.is_current(first)

    def test_begin_requires_entry_state(self):
        """Test a run cannot start mid-pipeline."""
        machine = IntakeStateMachine()
        with pytest.raises(InvalidTransitionError):
            machine.begin(IntakeState.OCR)

    def test_superseded_run_is_skipped(self):
        """Test an older upload no longer moves the machine after an approval."""
        machine = IntakeStateMachine(IntakeState.PENDING_REVIEW)
        upload = machine.begin(IntakeState.UPLOADING)
        approval = machine.begin(IntakeState.POSTING)
        assert machine.advance(approval, IntakeState.POSTED)

        assert not machine.advance(upload, IntakeState.OCR)
        assert machine.state == IntakeState.POSTED

    def test_overlapping_uploads(self):
        """Test the newer of two uploads owns the stages."""
        machine = IntakeStateMachine()
        first = machine.begin(IntakeState.UPLOADING)
        second = machine.begin(IntakeState.UPLOADING)

        for stage in PROCESSING_STAGES:
            assert not machine.advance(first, stage)
            assert machine.advance(second, stage)
        assert machine.advance(second, IntakeState.PENDING_REVIEW)
        assert machine.state == IntakeState.PENDING_REVIEW

    def test_superseded_failure_is_skipped(self):
        """Test an older run failing does not put the newer one in error."""
        machine = IntakeStateMachine()
        first = machine.begin(IntakeState.UPLOADING)
        machine.begin(IntakeState.UPLOADING)
        assert not machine.fail("timed out", first)
        assert machine.state == IntakeState.UPLOADING
        assert machine.last_error is None

    def test_reset_supersedes_run(self):
        """Test a run in flight during reset stays quiet afterwards."""
        machine = IntakeStateMachine()
        run = machine.begin(IntakeState.UPLOADING)
        machine.reset()
        assert not machine.advance(run, IntakeState.OCR)
        assert machine.state == IntakeState.IDLE


class TestListeners:
    """Tests for state listeners."""

    def test_listeners_see_every_step(self):
        """Test listeners receive (previous, current) in order."""
        machine = IntakeStateMachine()
        seen = []
        machine.subscribe(lambda previous, current: seen.append((previous, current)))

        walk_upload(machine)

        assert seen[0] == (IntakeState.IDLE, IntakeState.UPLOADING)
        assert [current for _, current in seen] == [
            IntakeState.UPLOADING,
            *PROCESSING_STAGES,
            IntakeState.PENDING_REVIEW,
        ]

    def test_unsubscribe(self):
        """Test an unsubscribed listener is not called."""
        machine = IntakeStateMachine()
        seen = []
        unsubscribe = machine.subscribe(lambda previous, current: seen.append(current))
        machine.transition(IntakeState.UPLOADING)
        unsubscribe()
        unsubscribe()
        machine.transition(IntakeState.OCR)
        assert seen == [IntakeState.UPLOADING]

    def test_rejected_transition_not_broadcast(self):
        """Test listeners are not called for a refused move."""
        machine = IntakeStateMachine()
        seen = []
        machine.subscribe(lambda previous, current: seen.append(current))
        with pytest.raises(InvalidTransitionError):
            machine.transition(IntakeState.POSTED)
        assert seen == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
