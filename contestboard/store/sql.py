"""SQLAlchemy-backed :class:`ContestStore`."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..db.engine import get_sessionmaker, make_engine
from ..errors import ConflictError, NotFoundError, StoreError
from ..models import ContestStatus, Participant
from .base import ChangeFeed, ContestStore

logger = logging.getLogger(__name__)


def _is_drawing_number_conflict(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: participants.drawing_number"
    # PostgreSQL: duplicate key value violates unique constraint "uq_participants_drawing_number"
    message = str(exc.orig).lower()
    return "unique" in message and "drawing_number" in message


class SqlContestStore(ContestStore):
    """Store participants and status in a relational database.

    Each call runs in its own transaction and returns detached instances, so
    callers can keep them around as plain snapshots.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        session_factory: Optional[sessionmaker] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        super().__init__(feed)
        if session_factory is None:
            session_factory = get_sessionmaker(engine or make_engine())
        self._Session = session_factory

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "SqlContestStore":
        return cls(make_engine(database_url), **kwargs)

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        try:
            with self._Session.begin() as session:
                yield session
        except IntegrityError as exc:
            logger.error("Integrity error while trying to %s: %s", action, exc.orig)
            if _is_drawing_number_conflict(exc):
                raise ConflictError(
                    f"Drawing number conflict while trying to {action}"
                ) from exc
            raise StoreError(f"Failed to {action}: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error("Database error while trying to %s: %s", action, exc)
            raise StoreError(f"Failed to {action}: {exc}") from exc

    def _require(self, session: Session, participant_id: int) -> Participant:
        participant = session.get(Participant, participant_id)
        if participant is None:
            raise NotFoundError(f"No participant with id {participant_id}")
        return participant

    # -------- reads --------
    def fetch_all_participants(self) -> list[Participant]:
        with self._transaction("fetch participants") as session:
            return list(
                session.scalars(select(Participant).order_by(Participant.id)).all()
            )

    def fetch_status(self) -> Optional[ContestStatus]:
        with self._transaction("fetch contest status") as session:
            return ContestStatus.get(session)

    def find_participant_by_name(self, name: str) -> Optional[Participant]:
        with self._transaction("find participant by name") as session:
            return Participant.get_by_name(session, name)

    # -------- writes --------
    def save_participant(self, participant: Participant) -> Participant:
        with self._transaction(f"save participant {participant.id}") as session:
            row = self._require(session, participant.id)
            row.education = participant.education
            row.experience = participant.experience
            row.test_score = participant.test_score
            row.next_stage_score = participant.next_stage_score
            row.total_score = participant.total_score
            row.last_updated = participant.last_updated or datetime.now(timezone.utc)
        logger.debug("Saved participant %s", participant.id)
        self.feed.publish_participants_changed()
        return row

    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        with self._transaction(
            f"assign drawing number {new_number} to participant {participant_id}"
        ) as session:
            row = self._require(session, participant_id)
            if new_number > 0:
                holder = Participant.get_by_drawing_number(session, new_number)
                if holder is not None and holder.id != participant_id:
                    raise ConflictError(
                        f"Drawing number {new_number} is already held by {holder.name}",
                        drawing_number=new_number,
                        holder_id=holder.id,
                    )
            row.drawing_number = new_number
            row.touch()
        logger.debug("Participant %s now holds drawing number %s", participant_id, new_number)
        self.feed.publish_participants_changed()
        return row

    def bulk_reset_participants(
        self, participants: Sequence[Participant]
    ) -> list[Participant]:
        with self._transaction("reset participants") as session:
            session.execute(delete(Participant))
            rows = [p.copy() for p in participants]
            session.add_all(rows)
            session.flush()
        logger.debug("Reset participants to %d rows", len(rows))
        self.feed.publish_participants_changed()
        return rows

    def save_status(self, **changes) -> ContestStatus:
        with self._transaction("save contest status") as session:
            status = ContestStatus.get_or_create(session)
            status.apply(changes)
        logger.debug("Saved contest status: %s", sorted(changes))
        self.feed.publish_status_changed()
        return status

    def save_next_stage_score(
        self, participant_id: int, score: Optional[float]
    ) -> Participant:
        with self._transaction(
            f"save next stage score for participant {participant_id}"
        ) as session:
            row = self._require(session, participant_id)
            row.next_stage_score = score
            row.touch()
        self.feed.publish_participants_changed()
        return row


__all__ = ["SqlContestStore"]
