from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from contestboard.errors import ConflictError, NotFoundError
from contestboard.models import Base, ContestPhase, ContestStatus, Participant
from contestboard.store import SqlContestStore
from contestboard.workflows import build_roster, initialize_participants


class SqlStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)
        self.store = SqlContestStore(session_factory=self.Session)
        self.events: list[str] = []
        self.subscription = self.store.subscribe(
            lambda: self.events.append("participants"),
            lambda: self.events.append("status"),
        )

    def tearDown(self) -> None:
        self.subscription.unsubscribe()
        self.engine.dispose()

    def test_initialize_creates_default_roster(self) -> None:
        created = initialize_participants(self.store)
        self.assertEqual(len(created), 10)
        stored = self.store.fetch_all_participants()
        self.assertEqual([p.name for p in stored][:3], ["Yantika", "Agung", "Khomsa"])
        for participant in stored:
            self.assertEqual(participant.education, "SLTA")
            self.assertEqual(participant.experience, "No Experience")
            self.assertIsNone(participant.test_score)
            self.assertEqual(participant.total_score, 5.0)
            self.assertEqual(participant.drawing_number, 0)
        self.assertEqual(self.events, ["participants"])

    def test_reset_replaces_previous_roster(self) -> None:
        initialize_participants(self.store, ["Yantika", "Agung"])
        first = self.store.fetch_all_participants()
        self.store.reassign_drawing_number(first[0].id, 9)

        initialize_participants(self.store, ["Intan"])
        stored = self.store.fetch_all_participants()
        self.assertEqual([p.name for p in stored], ["Intan"])
        self.assertEqual(self.store.assigned_drawing_numbers(), set())

    def test_save_participant_persists_inputs(self) -> None:
        participant = self.store.bulk_reset_participants(build_roster(["Aldo"]))[0]
        stamp = datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)
        participant.update_inputs(education="S1", experience="Sekdes", test_score=50, now=stamp)
        self.store.save_participant(participant)

        stored = self.store.find_participant_by_name("Aldo")
        self.assertEqual(stored.education, "S1")
        self.assertEqual(stored.experience, "Sekdes")
        self.assertAlmostEqual(stored.total_score, 65.0)
        self.assertEqual(stored.last_updated.replace(tzinfo=timezone.utc), stamp)

    def test_save_unknown_participant(self) -> None:
        with self.assertRaises(NotFoundError):
            self.store.save_participant(Participant(id=404, name="Ghost"))
        with self.assertRaises(NotFoundError):
            self.store.reassign_drawing_number(404, 1)
        with self.assertRaises(NotFoundError):
            self.store.save_next_stage_score(404, 10.0)

    def test_reassign_conflict_reports_holder(self) -> None:
        firman, siti = self.store.bulk_reset_participants(build_roster(["Firman", "Siti"]))
        self.store.reassign_drawing_number(firman.id, 5)
        with self.assertRaises(ConflictError) as ctx:
            self.store.reassign_drawing_number(siti.id, 5)
        self.assertEqual(ctx.exception.holder_id, firman.id)
        numbers = {p.name: p.drawing_number for p in self.store.fetch_all_participants()}
        self.assertEqual(numbers, {"Firman": 5, "Siti": 0})

    def test_unique_index_rejects_duplicate_numbers(self) -> None:
        duplicated = [
            Participant(name="Agus", drawing_number=5),
            Participant(name="Amri", drawing_number=5),
        ]
        with self.assertRaises(ConflictError):
            self.store.bulk_reset_participants(duplicated)
        self.assertEqual(self.store.fetch_all_participants(), [])

    def test_zero_may_repeat(self) -> None:
        rows = self.store.bulk_reset_participants(build_roster(["Agus", "Amri", "Martha"]))
        self.assertEqual([p.drawing_number for p in rows], [0, 0, 0])

    def test_clearing_a_number(self) -> None:
        martha = self.store.bulk_reset_participants(build_roster(["Martha"]))[0]
        self.store.reassign_drawing_number(martha.id, 12)
        cleared = self.store.reassign_drawing_number(martha.id, 0)
        self.assertEqual(cleared.drawing_number, 0)

    def test_next_stage_score(self) -> None:
        agus = self.store.bulk_reset_participants(build_roster(["Agus"]))[0]
        saved = self.store.save_next_stage_score(agus.id, 88.0)
        self.assertEqual(saved.next_stage_score, 88.0)
        saved = self.store.save_next_stage_score(agus.id, None)
        self.assertIsNone(saved.next_stage_score)

    def test_status_row_created_on_first_save(self) -> None:
        self.assertIsNone(self.store.fetch_status())
        now = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)
        self.store.save_status(
            phase=ContestPhase.ONGOING.value,
            start_time=now,
            end_time=now + timedelta(hours=2),
        )
        status = self.store.fetch_status()
        self.assertEqual(status.contest_phase, ContestPhase.ONGOING)
        self.assertFalse(status.has_tie)
        self.assertEqual(self.events, ["status"])

        self.store.save_status(has_tie=True)
        status = self.store.fetch_status()
        self.assertTrue(status.has_tie)
        self.assertEqual(status.contest_phase, ContestPhase.ONGOING)
        with self.Session() as session:
            self.assertEqual(session.query(ContestStatus).count(), 1)

    def test_unknown_status_field_rejected(self) -> None:
        with self.assertRaises(KeyError):
            self.store.save_status(winner="Agung")

    def test_unsubscribe_stops_notifications(self) -> None:
        self.subscription.unsubscribe()
        self.assertFalse(self.subscription.active)
        self.store.bulk_reset_participants(build_roster(["Siti"]))
        self.assertEqual(self.events, [])
        # A second unsubscribe is harmless.
        self.subscription.unsubscribe()

    def test_broken_listener_does_not_block_others(self) -> None:
        def broken() -> None:
            raise RuntimeError("listener failed")

        extra = self.store.subscribe(broken)
        try:
            with self.assertLogs("contestboard.store.base", level="ERROR"):
                self.store.bulk_reset_participants(build_roster(["Siti"]))
        finally:
            extra.unsubscribe()
        self.assertEqual(self.events, ["participants"])


if __name__ == "__main__":
    unittest.main()
