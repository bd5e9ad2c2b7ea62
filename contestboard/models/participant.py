"""Participant records: categorical inputs, scores, and the drawing number."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from ..db.utils import dt_iso, parse_dt
from ..scoring.score_model import (
    DEFAULT_EDUCATION,
    DEFAULT_EXPERIENCE,
    compute_total_score,
)
from .base import ID_TYPE, Base

UNASSIGNED_DRAWING_NUMBER = 0
MIN_DRAWING_NUMBER = 1
MAX_DRAWING_NUMBER = 999

_UNSET: Any = object()


class DrawState(str, enum.Enum):
    """Where a participant is in the drawing flow."""

    UNDRAWN = "undrawn"
    DRAWING = "drawing"
    DRAWN = "drawn"


class Participant(Base):
    """A named contestant.

    ``total_score`` is a cache of :func:`compute_total_score` over the current
    inputs; use :meth:`update_inputs` so that it never drifts from them.
    """

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    """Display name, unique within the contest and immutable after creation."""

    education: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_EDUCATION.value
    )
    """Education category label, e.g. ``"S1"``."""

    experience: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_EXPERIENCE.value
    )
    """Experience category label, e.g. ``"Sekdes"``."""

    test_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    """First-round test score in ``[0, 100]``; ``None`` counts as 0."""

    next_stage_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    """Tie-break round score in ``[0, 100]``; ``None`` counts as 0."""

    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    """Cached weighted total of the inputs above (excluding the next-stage score)."""

    drawing_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=UNASSIGNED_DRAWING_NUMBER,
        server_default=text("0"),
    )
    """Lottery number in ``[1, 999]``; ``0`` while undrawn."""

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp bumped on every mutation."""

    __table_args__ = (
        CheckConstraint(
            "drawing_number >= 0 AND drawing_number <= 999",
            name="drawing_number_range",
        ),
        # Zero means "unassigned" and may repeat; every other number is unique.
        Index(
            "uq_participants_drawing_number",
            "drawing_number",
            unique=True,
            sqlite_where=text("drawing_number > 0"),
            postgresql_where=text("drawing_number > 0"),
        ),
    )

    def __init__(
        self,
        *,
        name: str,
        education: str = DEFAULT_EDUCATION.value,
        experience: str = DEFAULT_EXPERIENCE.value,
        test_score: Optional[float] = None,
        next_stage_score: Optional[float] = None,
        drawing_number: int = UNASSIGNED_DRAWING_NUMBER,
        total_score: Optional[float] = None,
        last_updated: Optional[datetime] = None,
        id: Optional[int] = None,
    ) -> None:
        if id is not None:
            self.id = id
        self.name = name
        self.education = education
        self.experience = experience
        self.test_score = test_score
        self.next_stage_score = next_stage_score
        self.drawing_number = drawing_number
        self.total_score = (
            total_score
            if total_score is not None
            else compute_total_score(education, experience, test_score)
        )
        self.last_updated = last_updated or datetime.now(timezone.utc)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<Participant(id={id}, name={name!r}, total_score={total}, "
            "drawing_number={number})>"
        ).format(
            id=self.id,
            name=self.name,
            total=self.total_score,
            number=self.drawing_number,
        )

    @validates("name")
    def _normalize_name(self, _key: str, value: str) -> str:
        if value is None:
            raise ValueError("participant name must not be None")
        normalized = value.strip()
        if not normalized:
            raise ValueError("participant name must not be empty")
        return normalized

    @property
    def draw_state(self) -> DrawState:
        """``DRAWN`` once a number is held, otherwise ``UNDRAWN``.

        The transient ``DRAWING`` state is tracked by the allocator, not here.
        """
        if self.drawing_number and self.drawing_number > UNASSIGNED_DRAWING_NUMBER:
            return DrawState.DRAWN
        return DrawState.UNDRAWN

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_updated = now or datetime.now(timezone.utc)

    def recompute_total(self) -> float:
        """Refresh the cached ``total_score`` from the current inputs."""
        self.total_score = compute_total_score(
            self.education, self.experience, self.test_score
        )
        return self.total_score

    def update_inputs(
        self,
        *,
        education: Any = _UNSET,
        experience: Any = _UNSET,
        test_score: Any = _UNSET,
        now: Optional[datetime] = None,
    ) -> None:
        """Apply any supplied scoring inputs, recompute the total and bump ``last_updated``.

        Arguments left out keep their current values; pass ``test_score=None``
        to clear the test score.
        """
        if education is not _UNSET:
            self.education = getattr(education, "value", education)
        if experience is not _UNSET:
            self.experience = getattr(experience, "value", experience)
        if test_score is not _UNSET:
            self.test_score = test_score
        self.recompute_total()
        self.touch(now)

    def copy(self) -> "Participant":
        """Return a detached copy carrying the same column values."""
        return Participant(
            id=self.id,
            name=self.name,
            education=self.education,
            experience=self.experience,
            test_score=self.test_score,
            next_stage_score=self.next_stage_score,
            drawing_number=self.drawing_number,
            total_score=self.total_score,
            last_updated=self.last_updated,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "education": self.education,
            "experience": self.experience,
            "test_score": self.test_score,
            "next_stage_score": self.next_stage_score,
            "total_score": self.total_score,
            "drawing_number": self.drawing_number,
            "last_updated": dt_iso(self.last_updated),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Participant":
        """Build a transient instance from a row returned by the REST backend."""
        return cls(
            id=data.get("id"),
            name=data["name"],
            education=data.get("education") or DEFAULT_EDUCATION.value,
            experience=data.get("experience") or DEFAULT_EXPERIENCE.value,
            test_score=_optional_float(data.get("test_score")),
            next_stage_score=_optional_float(data.get("next_stage_score")),
            drawing_number=int(data.get("drawing_number") or 0),
            total_score=_optional_float(data.get("total_score")),
            last_updated=parse_dt(data.get("last_updated")),
        )

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["Participant"]:
        """Get a participant by their display name."""
        return session.scalar(select(cls).where(cls.name == name.strip()))

    @classmethod
    def get_by_drawing_number(
        cls, session: Session, drawing_number: int
    ) -> Optional["Participant"]:
        """Return the participant holding ``drawing_number``, if any (never matches 0)."""
        if drawing_number <= UNASSIGNED_DRAWING_NUMBER:
            return None
        return session.scalar(select(cls).where(cls.drawing_number == drawing_number))


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


__all__ = [
    "DrawState",
    "MAX_DRAWING_NUMBER",
    "MIN_DRAWING_NUMBER",
    "Participant",
    "UNASSIGNED_DRAWING_NUMBER",
]
