from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from contestboard.errors import IllegalTransitionError, ValidationError
from contestboard.models import ContestPhase, ContestStatus, Participant
from contestboard.status import ContestStateMachine

NOW = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


def _participant(pid: int, total: float) -> Participant:
    return Participant(id=pid, name=f"P{pid}", total_score=total)


class TransitionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.machine = ContestStateMachine(ongoing_minutes=120, next_stage_minutes=60)

    def test_ongoing_stamps_start_and_end(self) -> None:
        change = self.machine.transition(ContestStatus(), ContestPhase.ONGOING, now=NOW)
        self.assertIs(change.source, ContestPhase.NOT_STARTED)
        self.assertIs(change.target, ContestPhase.ONGOING)
        self.assertEqual(change.changes["phase"], "ongoing")
        self.assertEqual(change.changes["start_time"], NOW)
        self.assertEqual(change.changes["end_time"], NOW + timedelta(minutes=120))

    def test_duration_override(self) -> None:
        change = self.machine.transition(
            ContestStatus(), "ongoing", now=NOW, duration_minutes=5
        )
        self.assertEqual(change.changes["end_time"], NOW + timedelta(minutes=5))

    def test_nonpositive_duration_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.machine.transition(
                ContestStatus(), ContestPhase.ONGOING, now=NOW, duration_minutes=0
            )

    def test_untimed_phase_clears_times(self) -> None:
        status = ContestStatus(
            phase=ContestPhase.ONGOING, start_time=NOW, end_time=NOW + timedelta(hours=2)
        )
        change = self.machine.transition(status, ContestPhase.UNDER_CORRECTION, now=NOW)
        self.assertIsNone(change.changes["start_time"])
        self.assertIsNone(change.changes["end_time"])
        self.assertNotIn("has_tie", change.changes)

    def test_unknown_phase_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.machine.transition(ContestStatus(), "paused", now=NOW)

    def test_backwards_moves_are_allowed(self) -> None:
        status = ContestStatus(phase=ContestPhase.FINISHED)
        change = self.machine.transition(status, ContestPhase.NOT_STARTED, now=NOW)
        self.assertEqual(change.changes["phase"], "not_started")

    def test_finished_with_tie_sets_has_tie(self) -> None:
        status = ContestStatus(phase=ContestPhase.UNDER_CORRECTION)
        change = self.machine.transition(
            status,
            ContestPhase.FINISHED,
            now=NOW,
            participants=[_participant(1, 70.0), _participant(2, 70.0), _participant(3, 40.0)],
        )
        self.assertTrue(change.changes["has_tie"])
        self.assertTrue(change.tie.is_tie)
        self.assertEqual([r.participant.id for r in change.tie.tied_group], [1, 2])

    def test_finished_without_tie(self) -> None:
        change = self.machine.transition(
            ContestStatus(phase=ContestPhase.UNDER_CORRECTION),
            ContestPhase.FINISHED,
            now=NOW,
            participants=[_participant(1, 71.0), _participant(2, 70.0)],
        )
        self.assertFalse(change.changes["has_tie"])
        self.assertEqual(change.tie.winner.participant.id, 1)

    def test_finished_with_no_participants_records_no_tie(self) -> None:
        change = self.machine.transition(
            ContestStatus(phase=ContestPhase.UNDER_CORRECTION), ContestPhase.FINISHED, now=NOW
        )
        self.assertFalse(change.changes["has_tie"])

    def test_next_stage_requires_finished_tie(self) -> None:
        with self.assertRaises(IllegalTransitionError):
            self.machine.transition(
                ContestStatus(phase=ContestPhase.FINISHED, has_tie=False),
                ContestPhase.NEXT_STAGE,
                now=NOW,
            )
        with self.assertRaises(IllegalTransitionError):
            self.machine.transition(
                ContestStatus(phase=ContestPhase.ONGOING, has_tie=True),
                ContestPhase.NEXT_STAGE,
                now=NOW,
            )

    def test_next_stage_from_finished_tie(self) -> None:
        status = ContestStatus(phase=ContestPhase.FINISHED, has_tie=True)
        change = self.machine.transition(status, ContestPhase.NEXT_STAGE, now=NOW)
        self.assertTrue(change.changes["has_tie"])
        self.assertEqual(change.changes["end_time"], NOW + timedelta(minutes=60))

    def test_status_snapshot_not_modified(self) -> None:
        status = ContestStatus()
        self.machine.transition(status, ContestPhase.ONGOING, now=NOW)
        self.assertEqual(status.phase, "not_started")
        self.assertIsNone(status.end_time)


class TimeElapsedTests(unittest.TestCase):
    def setUp(self) -> None:
        self.machine = ContestStateMachine()
        self.status = ContestStatus(
            phase=ContestPhase.ONGOING,
            start_time=NOW,
            end_time=NOW + timedelta(minutes=120),
        )

    def test_nothing_before_deadline(self) -> None:
        self.assertIsNone(
            self.machine.on_time_elapsed(self.status, now=NOW + timedelta(minutes=119))
        )

    def test_advisory_without_auto_transition(self) -> None:
        elapsed = self.machine.on_time_elapsed(self.status, now=NOW + timedelta(minutes=120))
        self.assertIs(elapsed.phase, ContestPhase.ONGOING)
        self.assertIs(elapsed.suggested, ContestPhase.UNDER_CORRECTION)
        self.assertIsNone(elapsed.change)

    def test_auto_transition_plans_change(self) -> None:
        elapsed = self.machine.on_time_elapsed(
            self.status, now=NOW + timedelta(hours=3), auto_transition=True
        )
        self.assertEqual(elapsed.change.changes["phase"], "under_correction")

    def test_next_stage_expiry_suggests_finished(self) -> None:
        status = ContestStatus(
            phase=ContestPhase.NEXT_STAGE, has_tie=True, end_time=NOW
        )
        elapsed = self.machine.on_time_elapsed(status, now=NOW)
        self.assertIs(elapsed.suggested, ContestPhase.FINISHED)

    def test_untimed_phase_never_elapses(self) -> None:
        status = ContestStatus(phase=ContestPhase.FINISHED, end_time=NOW)
        self.assertFalse(self.machine.is_time_elapsed(status, NOW + timedelta(days=1)))

    def test_naive_end_time_treated_as_utc(self) -> None:
        status = ContestStatus(
            phase=ContestPhase.ONGOING, end_time=datetime(2025, 5, 1, 9, 0)
        )
        self.assertTrue(self.machine.is_time_elapsed(status, NOW))


if __name__ == "__main__":
    unittest.main()
