from __future__ import annotations

import logging
from datetime import datetime, timezone

from contestboard.config import Settings
from contestboard.db.engine import make_engine
from contestboard.models import Base, ContestPhase
from contestboard.store import SqlContestStore
from contestboard.workflows import initialize_participants, update_participant_inputs

# (education, experience, test score) for the first few roster entries
SAMPLE_INPUTS = [
    ("S1", "Sekdes", 50),
    ("S2", "Kepala Desa", 72.5),
    ("D3", "Kaur", 64),
    ("SLTA", "BPD", 80),
]


def main() -> None:
    """Reset the development database to a fresh roster with a few sample scores."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    store = SqlContestStore(engine)

    participants = initialize_participants(store, settings.roster)
    now = datetime.now(timezone.utc)
    for participant, (education, experience, score) in zip(participants, SAMPLE_INPUTS):
        update_participant_inputs(
            store,
            participant,
            education=education,
            experience=experience,
            test_score=score,
            now=now,
        )

    store.save_status(
        phase=ContestPhase.NOT_STARTED.value,
        start_time=None,
        end_time=None,
        has_tie=False,
        drawing_open=False,
    )
    print(f"Development database seeded with {len(participants)} participants.")


if __name__ == "__main__":
    main()
