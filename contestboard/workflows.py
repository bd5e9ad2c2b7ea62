"""Contest operations shared by the dashboard and the scripts: roster, scores, numbers, status."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from .config import MAX_PARTICIPANTS, DEFAULT_ROSTER
from .drawing.allocator import DrawingNumberAllocator
from .drawing.draw_number import normalize_drawing_number
from .errors import NotFoundError, ValidationError
from .models import ContestPhase, ContestStatus, Participant
from .scoring.ranking import Ranked, detect_first_place_tie, rank, rank_next_stage
from .scoring.score_model import (
    DEFAULT_EDUCATION,
    DEFAULT_EXPERIENCE,
    normalize_next_stage_score,
    normalize_test_score,
    parse_education,
    parse_experience,
)
from .status import ContestStateMachine, StatusChange
from .store.base import ContestStore

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True)
class ContestOutcome:
    """Winner/tie picture derived from the current participants and phase.

    Attributes
    ----------
    ranking : list[Ranked]
        First-round ranking of every participant.
    is_tie : bool
        Whether several participants share the leading total.
    tied_group : list[Ranked]
        Entries tied for first (only the leader when there is no tie).
    winner : Optional[Ranked]
        First-round winner; ``None`` on a tie.
    next_stage_ranking : list[Ranked]
        Tie-break ranking of the tied group, populated in ``next_stage``.
    next_stage_winner : Optional[Ranked]
        Top of ``next_stage_ranking``, populated in ``next_stage``.
    """

    ranking: list[Ranked[Participant]]
    is_tie: bool = False
    tied_group: list[Ranked[Participant]] = field(default_factory=list)
    winner: Optional[Ranked[Participant]] = None
    next_stage_ranking: list[Ranked[Participant]] = field(default_factory=list)
    next_stage_winner: Optional[Ranked[Participant]] = None

    @property
    def decided(self) -> bool:
        return self.winner is not None or self.next_stage_winner is not None


def build_roster(
    names: Optional[Iterable[str]] = None,
    *,
    now: Optional[datetime] = None,
) -> list[Participant]:
    """Return fresh participants for ``names`` with default inputs.

    Each starts with ``SLTA``, ``No Experience``, no test score, a total of 5
    and no drawing number.

    Raises
    ------
    ValidationError
        If the roster is empty, larger than ten, or has blank/duplicate names.
    """
    cleaned = [name.strip() for name in (names if names is not None else DEFAULT_ROSTER)]
    if not cleaned:
        raise ValidationError("The roster must contain at least one name")
    if len(cleaned) > MAX_PARTICIPANTS:
        raise ValidationError(
            f"The roster is limited to {MAX_PARTICIPANTS} participants, got {len(cleaned)}"
        )
    if any(not name for name in cleaned):
        raise ValidationError("Participant names must not be blank")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Participant names must be unique")

    stamp = now or datetime.now(timezone.utc)
    return [
        Participant(
            name=name,
            education=DEFAULT_EDUCATION.value,
            experience=DEFAULT_EXPERIENCE.value,
            test_score=None,
            last_updated=stamp,
        )
        for name in cleaned
    ]


def initialize_participants(
    store: ContestStore,
    names: Optional[Iterable[str]] = None,
) -> list[Participant]:
    """Clear every participant and recreate the roster with default values."""
    roster = build_roster(names)
    created = store.bulk_reset_participants(roster)
    logger.info("Initialized %d participants", len(created))
    return created


def find_participant(store: ContestStore, name: str) -> Participant:
    """Return the participant called ``name`` or raise :class:`NotFoundError`."""
    participant = store.find_participant_by_name(name)
    if participant is None:
        raise NotFoundError(f"No participant named {name!r}")
    return participant


def update_participant_inputs(
    store: ContestStore,
    participant: Participant,
    *,
    education: Any = _UNSET,
    experience: Any = _UNSET,
    test_score: Any = _UNSET,
    now: Optional[datetime] = None,
) -> Participant:
    """Change scoring inputs, recompute the total and persist.

    ``test_score`` is clamped into ``[0, 100]`` (blank clears it, garbage
    becomes 0). Category labels are canonicalized when recognized; unknown
    labels are kept and score 0. ``participant`` itself is not modified; the
    stored row is returned so the caller can reflect any coerced value.
    """
    changes: dict[str, Any] = {}
    if education is not _UNSET:
        member = parse_education(education)
        changes["education"] = member.value if member is not None else str(education).strip()
    if experience is not _UNSET:
        member = parse_experience(experience)
        changes["experience"] = member.value if member is not None else str(experience).strip()
    if test_score is not _UNSET:
        changes["test_score"] = normalize_test_score(test_score)

    updated = participant.copy()
    updated.update_inputs(now=now, **changes)
    saved = store.save_participant(updated)
    logger.info(
        "Updated %s for %s (total %.1f)",
        ", ".join(sorted(changes)) or "nothing",
        participant.name,
        saved.total_score,
    )
    return saved


def set_next_stage_score(
    store: ContestStore,
    participant: Participant,
    raw_score: Any,
) -> Participant:
    """Clamp and persist a tie-break score; blank input clears it."""
    score = normalize_next_stage_score(raw_score)
    return store.save_next_stage_score(participant.id, score)


def reassign_drawing_number(
    store: ContestStore,
    participant: Participant,
    raw_number: Any,
    *,
    allocator: Optional[DrawingNumberAllocator] = None,
) -> Participant:
    """Administrator override of a participant's drawing number.

    ``raw_number`` is clamped into ``[1, 999]`` before allocation. Raises
    :class:`~contestboard.errors.ConflictError` if another participant holds it.
    """
    allocator = allocator or DrawingNumberAllocator(store)
    number = normalize_drawing_number(raw_number)
    return allocator.allocate(participant, number)


def change_status(
    store: ContestStore,
    target: ContestPhase | str,
    *,
    state_machine: Optional[ContestStateMachine] = None,
    now: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
    participants: Optional[Sequence[Participant]] = None,
) -> tuple[ContestStatus, StatusChange]:
    """Move the contest to ``target`` and persist the new status.

    Entering ``finished`` runs tie detection over ``participants`` (fetched
    from the store when omitted) and stores ``has_tie``.
    """
    state_machine = state_machine or ContestStateMachine()
    try:
        target_phase = ContestPhase(target)
    except ValueError as exc:
        raise ValidationError(f"Unknown contest phase {target!r}") from exc

    current = store.fetch_status() or ContestStatus()
    if participants is None and target_phase is ContestPhase.FINISHED:
        participants = store.fetch_all_participants()

    change = state_machine.transition(
        current,
        target_phase,
        now=now or datetime.now(timezone.utc),
        duration_minutes=duration_minutes,
        participants=participants,
    )
    saved = store.save_status(**change.changes)
    logger.info("Contest status %s -> %s", change.source.value, change.target.value)
    return saved, change


def set_drawing_open(store: ContestStore, is_open: bool) -> ContestStatus:
    """Open or close the participant drawing phase."""
    status = store.save_status(drawing_open=bool(is_open))
    logger.info("Drawing phase %s", "opened" if is_open else "closed")
    return status


def resolve_outcome(
    participants: Sequence[Participant],
    status: Optional[ContestStatus],
) -> ContestOutcome:
    """Derive the winner/tie picture for ``participants`` in the current phase.

    Outside ``finished``/``next_stage`` only the ranking is filled in. A tie is
    settled by the next-stage ranking of the tied group, both while
    ``next_stage`` runs and once the contest is ``finished`` again after it.
    """
    ranking = rank(participants)
    phase = status.contest_phase if status is not None else ContestPhase.NOT_STARTED
    if phase not in (ContestPhase.FINISHED, ContestPhase.NEXT_STAGE):
        return ContestOutcome(ranking=ranking)

    tie = detect_first_place_tie(ranking)
    tied_participants = [entry.participant for entry in tie.tied_group]
    next_stage_played = any(p.next_stage_score is not None for p in tied_participants)
    if tie.is_tie and (phase is ContestPhase.NEXT_STAGE or next_stage_played):
        next_ranking = rank_next_stage(tied_participants)
        return ContestOutcome(
            ranking=ranking,
            is_tie=True,
            tied_group=tie.tied_group,
            next_stage_ranking=next_ranking,
            next_stage_winner=next_ranking[0] if next_ranking else None,
        )
    return ContestOutcome(
        ranking=ranking,
        is_tie=tie.is_tie,
        tied_group=tie.tied_group,
        winner=tie.winner,
    )


__all__ = [
    "ContestOutcome",
    "build_roster",
    "change_status",
    "find_participant",
    "initialize_participants",
    "reassign_drawing_number",
    "resolve_outcome",
    "set_drawing_open",
    "set_next_stage_score",
    "update_participant_inputs",
]
