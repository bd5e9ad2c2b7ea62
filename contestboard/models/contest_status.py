"""Singleton record holding the contest's workflow phase."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, Session, mapped_column

from ..db.utils import dt_iso, parse_dt
from .base import Base

STATUS_ROW_ID = 1


class ContestPhase(str, enum.Enum):
    """Workflow phases of the contest."""

    NOT_STARTED = "not_started"
    ONGOING = "ongoing"
    UNDER_CORRECTION = "under_correction"
    FINISHED = "finished"
    NEXT_STAGE = "next_stage"

    @property
    def label(self) -> str:
        return _PHASE_LABELS[self]


_PHASE_LABELS = {
    ContestPhase.NOT_STARTED: "Not Started Yet",
    ContestPhase.ONGOING: "Ongoing",
    ContestPhase.UNDER_CORRECTION: "Under Correction",
    ContestPhase.FINISHED: "Finished",
    ContestPhase.NEXT_STAGE: "Next Stage",
}


class ContestStatus(Base):
    """The single status row for the whole contest. Mutated in place, never deleted."""

    __tablename__ = "contest_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=STATUS_ROW_ID)
    """Always :data:`STATUS_ROW_ID`."""

    phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContestPhase.NOT_STARTED.value
    )
    """Current :class:`ContestPhase` value."""

    start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Set on entering ``ongoing`` or ``next_stage``; cleared otherwise."""

    end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Scheduled end of the timed phase; cleared together with ``start_time``."""

    has_tie: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """Whether the first round ended with several participants tied for first."""

    drawing_open: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """Whether participants may currently draw their numbers."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "phase IN ('not_started','ongoing','under_correction','finished','next_stage')",
            name="phase_enum",
        ),
    )

    def __init__(
        self,
        *,
        phase: ContestPhase | str = ContestPhase.NOT_STARTED,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        has_tie: bool = False,
        drawing_open: bool = False,
        created_at: Optional[datetime] = None,
        id: int = STATUS_ROW_ID,
    ) -> None:
        self.id = id
        self.phase = ContestPhase(phase).value
        self.start_time = start_time
        self.end_time = end_time
        self.has_tie = has_tie
        self.drawing_open = drawing_open
        self.created_at = created_at or datetime.now(timezone.utc)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<ContestStatus(phase={phase}, has_tie={tie}, end_time={end})>".format(
            phase=self.phase,
            tie=self.has_tie,
            end=dt_iso(self.end_time),
        )

    @property
    def contest_phase(self) -> ContestPhase:
        return ContestPhase(self.phase)

    def apply(self, changes: dict[str, Any]) -> None:
        """Copy a partial update (as produced by the state machine) onto this row."""
        for key, value in changes.items():
            if key == "phase":
                value = ContestPhase(value).value
            elif key not in _MUTABLE_FIELDS:
                raise KeyError(f"Unknown contest status field '{key}'")
            setattr(self, key, value)

    def copy(self) -> "ContestStatus":
        return ContestStatus(
            id=self.id,
            phase=self.phase,
            start_time=self.start_time,
            end_time=self.end_time,
            has_tie=self.has_tie,
            drawing_open=self.drawing_open,
            created_at=self.created_at,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase,
            "start_time": dt_iso(self.start_time),
            "end_time": dt_iso(self.end_time),
            "has_tie": bool(self.has_tie),
            "drawing_open": bool(self.drawing_open),
            "created_at": dt_iso(self.created_at),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ContestStatus":
        return cls(
            id=int(data.get("id") or STATUS_ROW_ID),
            phase=data.get("phase") or ContestPhase.NOT_STARTED.value,
            start_time=parse_dt(data.get("start_time")),
            end_time=parse_dt(data.get("end_time")),
            has_tie=bool(data.get("has_tie")),
            drawing_open=bool(data.get("drawing_open")),
            created_at=parse_dt(data.get("created_at")),
        )

    @classmethod
    def get(cls, session: Session) -> Optional["ContestStatus"]:
        return session.get(cls, STATUS_ROW_ID)

    @classmethod
    def get_or_create(cls, session: Session) -> "ContestStatus":
        """Return the status row, creating it in ``not_started`` if it is missing."""
        status = cls.get(session)
        if status is None:
            status = cls()
            session.add(status)
            session.flush()
        return status


_MUTABLE_FIELDS = frozenset(
    {"phase", "start_time", "end_time", "has_tie", "drawing_open"}
)


__all__ = ["ContestPhase", "ContestStatus", "STATUS_ROW_ID"]
