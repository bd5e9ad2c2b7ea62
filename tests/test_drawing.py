from __future__ import annotations

import random
import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from contestboard.drawing import (
    DrawingNumberAllocator,
    format_drawing_number,
    normalize_drawing_number,
    validate_drawing_number,
)
from contestboard.errors import (
    ConflictError,
    DrawExhaustedError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from contestboard.models import Base, DrawState, Participant
from contestboard.store import SqlContestStore
from contestboard.workflows import build_roster


class DrawNumberHelperTests(unittest.TestCase):
    def test_normalize_clamps_and_parses_leniently(self) -> None:
        self.assertEqual(normalize_drawing_number("-5"), 1)
        self.assertEqual(normalize_drawing_number("1500"), 999)
        self.assertEqual(normalize_drawing_number("12.7"), 12)
        self.assertEqual(normalize_drawing_number(" 42 "), 42)
        self.assertEqual(normalize_drawing_number(7.9), 7)
        self.assertEqual(normalize_drawing_number("abc"), 1)
        self.assertEqual(normalize_drawing_number(None), 1)
        self.assertEqual(normalize_drawing_number(0), 1)

    def test_validate_rejects_out_of_range(self) -> None:
        self.assertEqual(validate_drawing_number(999), 999)
        for bad in (0, 1000, -1, "5", 5.0, True):
            with self.assertRaises(ValidationError):
                validate_drawing_number(bad)

    def test_format(self) -> None:
        self.assertEqual(format_drawing_number(7), "007")
        self.assertEqual(format_drawing_number(123), "123")
        self.assertEqual(format_drawing_number(0), "-")
        self.assertEqual(format_drawing_number(None), "-")


class _StaleThenConflictingStore(SqlContestStore):
    """Reports no holders, then loses the race at write time."""

    def fetch_all_participants(self) -> list[Participant]:
        return []

    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        raise ConflictError("lost the race", drawing_number=new_number)


class _BrokenStore(SqlContestStore):
    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        raise StoreError("backend unavailable")


class _ForgetfulStore(SqlContestStore):
    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        raise NotFoundError(f"No participant with id {participant_id}")


class AllocatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)
        self.store = SqlContestStore(session_factory=self.Session)
        self.participants = self.store.bulk_reset_participants(
            build_roster(["Yantika", "Agung", "Khomsa"])
        )
        self.fixed_now = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)
        self.allocator = DrawingNumberAllocator(
            self.store, rng=random.Random(1234), clock=lambda: self.fixed_now
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _stored(self, participant: Participant) -> Participant:
        with self.Session() as session:
            return session.get(Participant, participant.id)

    def test_allocate_assigns_and_persists(self) -> None:
        yantika = self.participants[0]
        self.allocator.allocate(yantika, 7)
        self.assertEqual(yantika.drawing_number, 7)
        self.assertEqual(self._stored(yantika).drawing_number, 7)
        self.assertIs(yantika.draw_state, DrawState.DRAWN)

    def test_conflict_leaves_both_participants_unchanged(self) -> None:
        yantika, agung, _ = self.participants
        self.allocator.allocate(yantika, 7)
        agung_before = self._stored(agung)

        with self.assertRaises(ConflictError) as ctx:
            self.allocator.allocate(agung, 7)

        self.assertEqual(ctx.exception.drawing_number, 7)
        self.assertEqual(ctx.exception.holder_id, yantika.id)
        self.assertEqual(agung.drawing_number, 0)
        self.assertEqual(self._stored(agung).drawing_number, 0)
        self.assertEqual(self._stored(agung).last_updated, agung_before.last_updated)
        self.assertEqual(self._stored(yantika).drawing_number, 7)

    def test_same_number_is_a_no_op(self) -> None:
        yantika = self.participants[0]
        self.allocator.allocate(yantika, 7)
        stamp = self._stored(yantika).last_updated
        self.allocator.allocate(yantika, 7)
        self.assertEqual(self._stored(yantika).drawing_number, 7)
        self.assertEqual(self._stored(yantika).last_updated, stamp)

    def test_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.allocator.allocate(self.participants[0], 1000)

    def test_late_conflict_rolls_back_local_state(self) -> None:
        store = _StaleThenConflictingStore(session_factory=self.Session)
        allocator = DrawingNumberAllocator(store)
        agung = self.participants[1]
        before = agung.last_updated

        with self.assertRaises(ConflictError):
            allocator.allocate(agung, 12)

        self.assertEqual(agung.drawing_number, 0)
        self.assertEqual(agung.last_updated, before)

    def test_store_failure_rolls_back_local_state(self) -> None:
        allocator = DrawingNumberAllocator(_BrokenStore(session_factory=self.Session))
        khomsa = self.participants[2]
        with self.assertRaises(StoreError):
            allocator.allocate(khomsa, 3)
        self.assertEqual(khomsa.drawing_number, 0)

    def test_missing_participant_rolls_back_local_state(self) -> None:
        allocator = DrawingNumberAllocator(_ForgetfulStore(session_factory=self.Session))
        agung = self.participants[1]
        before = agung.last_updated
        with self.assertRaises(NotFoundError):
            allocator.allocate(agung, 12)
        self.assertEqual(agung.drawing_number, 0)
        self.assertEqual(agung.last_updated, before)

    def test_draw_random_avoids_excluded_numbers(self) -> None:
        excluded = set(range(1, 999))
        number = self.allocator.draw_random(self.participants[0], excluded)
        self.assertEqual(number, 999)

    def test_draw_random_exhausted(self) -> None:
        with self.assertRaises(DrawExhaustedError):
            self.allocator.draw_random(self.participants[0], range(1, 1000))

    def test_draw_random_does_not_reroll(self) -> None:
        yantika = self.participants[0]
        self.allocator.allocate(yantika, 42)
        self.assertEqual(self.allocator.draw_random(yantika, {42}), 42)

    def test_draw_assigns_unique_numbers(self) -> None:
        numbers = set()
        for participant in self.participants:
            outcome = self.allocator.draw(participant)
            self.assertFalse(outcome.already_drawn)
            self.assertTrue(1 <= outcome.drawing_number <= 999)
            numbers.add(outcome.drawing_number)
        self.assertEqual(len(numbers), len(self.participants))
        self.assertEqual(self.store.assigned_drawing_numbers(), numbers)

    def test_draw_reports_existing_number(self) -> None:
        yantika = self.participants[0]
        first = self.allocator.draw(yantika)
        second = self.allocator.draw(yantika)
        self.assertTrue(second.already_drawn)
        self.assertEqual(second.drawing_number, first.drawing_number)
        self.assertIs(self.allocator.state_of(yantika), DrawState.DRAWN)

    def test_state_of_undrawn(self) -> None:
        self.assertIs(self.allocator.state_of(self.participants[0]), DrawState.UNDRAWN)


if __name__ == "__main__":
    unittest.main()
