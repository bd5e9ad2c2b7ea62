"""Contest status state machine.

The machine is pure: it inspects a :class:`ContestStatus` snapshot and returns
the partial update to persist. It knows nothing about sessions or logins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional, Sequence

from .config import DEFAULT_NEXT_STAGE_MINUTES, DEFAULT_ONGOING_MINUTES
from .db.utils import as_utc
from .errors import IllegalTransitionError, ValidationError
from .models.contest_status import ContestPhase, ContestStatus
from .scoring.ranking import TieResult, detect_first_place_tie, rank

if TYPE_CHECKING:
    from .models import Participant

TIMED_PHASES = frozenset({ContestPhase.ONGOING, ContestPhase.NEXT_STAGE})

# What the administrator is expected to do once a timed phase runs out.
_ON_EXPIRY = {
    ContestPhase.ONGOING: ContestPhase.UNDER_CORRECTION,
    ContestPhase.NEXT_STAGE: ContestPhase.FINISHED,
}


@dataclass(frozen=True)
class StatusChange:
    """A transition ready to be handed to ``ContestStore.save_status``.

    Attributes
    ----------
    source : ContestPhase
        Phase before the transition.
    target : ContestPhase
        Phase after the transition.
    changes : dict[str, Any]
        Partial status update (``phase``, ``start_time``, ``end_time`` and,
        when entering ``finished`` or ``next_stage``, ``has_tie``).
    tie : Optional[TieResult]
        Tie detection result when entering ``finished``.
    """

    source: ContestPhase
    target: ContestPhase
    changes: dict[str, Any] = field(default_factory=dict)
    tie: Optional[TieResult] = None


@dataclass(frozen=True)
class TimeElapsed:
    """Advisory produced when a timed phase reaches its ``end_time``.

    ``change`` is only populated when the caller opted into automatic
    transitions.
    """

    phase: ContestPhase
    suggested: ContestPhase
    change: Optional[StatusChange] = None


class ContestStateMachine:
    """Rules for moving between :class:`ContestPhase` values.

    ``not_started -> ongoing -> under_correction -> finished -> next_stage -> finished``.
    Every administrator-initiated transition is allowed except entering
    ``next_stage``, which requires ``finished`` with ``has_tie`` set.
    """

    def __init__(
        self,
        *,
        ongoing_minutes: int = DEFAULT_ONGOING_MINUTES,
        next_stage_minutes: int = DEFAULT_NEXT_STAGE_MINUTES,
    ) -> None:
        self.ongoing_minutes = ongoing_minutes
        self.next_stage_minutes = next_stage_minutes

    def can_transition(self, status: ContestStatus, target: ContestPhase) -> bool:
        if ContestPhase(target) is ContestPhase.NEXT_STAGE:
            return status.contest_phase is ContestPhase.FINISHED and bool(status.has_tie)
        return True

    def transition(
        self,
        status: ContestStatus,
        target: ContestPhase | str,
        *,
        now: datetime,
        duration_minutes: Optional[int] = None,
        participants: Optional[Sequence["Participant"]] = None,
    ) -> StatusChange:
        """Plan the move from ``status`` to ``target``.

        Parameters
        ----------
        status : ContestStatus
            Current status snapshot. It is not modified.
        target : ContestPhase or str
            Phase to enter.
        now : datetime
            Current time, stamped as ``start_time`` for timed phases.
        duration_minutes : Optional[int], default: None
            Override the configured duration of a timed phase.
        participants : Optional[Sequence[Participant]], default: None
            Current participants; required for tie detection when entering
            ``finished``. An empty or missing list records no tie.

        Returns
        -------
        StatusChange
            The partial update to persist.

        Raises
        ------
        IllegalTransitionError
            If ``target`` is ``next_stage`` and the contest is not a finished tie.
        ValidationError
            If ``target`` is not a phase or the duration is not positive.
        """
        try:
            target_phase = ContestPhase(target)
        except ValueError as exc:
            raise ValidationError(f"Unknown contest phase {target!r}") from exc

        source = status.contest_phase
        if not self.can_transition(status, target_phase):
            raise IllegalTransitionError(
                "next_stage can only be entered from finished when the first round is tied "
                f"(current phase {source.value}, has_tie={bool(status.has_tie)})"
            )

        changes: dict[str, Any] = {"phase": target_phase.value}
        if target_phase in TIMED_PHASES:
            minutes = (
                duration_minutes
                if duration_minutes is not None
                else self._default_minutes(target_phase)
            )
            if minutes <= 0:
                raise ValidationError("duration_minutes must be positive")
            started = as_utc(now)
            changes["start_time"] = started
            changes["end_time"] = started + timedelta(minutes=minutes)
        else:
            changes["start_time"] = None
            changes["end_time"] = None

        tie: Optional[TieResult] = None
        if target_phase is ContestPhase.FINISHED:
            tie = detect_first_place_tie(rank(list(participants or [])))
            changes["has_tie"] = tie.is_tie
        elif target_phase is ContestPhase.NEXT_STAGE:
            changes["has_tie"] = True

        return StatusChange(source=source, target=target_phase, changes=changes, tie=tie)

    def is_time_elapsed(self, status: ContestStatus, now: datetime) -> bool:
        if status.contest_phase not in TIMED_PHASES or status.end_time is None:
            return False
        return as_utc(now) >= as_utc(status.end_time)

    def on_time_elapsed(
        self,
        status: ContestStatus,
        *,
        now: datetime,
        auto_transition: bool = False,
        participants: Optional[Sequence["Participant"]] = None,
    ) -> Optional[TimeElapsed]:
        """React to a timer firing.

        Returns ``None`` if the current phase has no elapsed deadline. Otherwise
        returns an advisory naming the phase the administrator should move to;
        with ``auto_transition`` the advisory also carries the planned change.
        """
        if not self.is_time_elapsed(status, now):
            return None
        phase = status.contest_phase
        suggested = _ON_EXPIRY[phase]
        change = None
        if auto_transition:
            change = self.transition(
                status, suggested, now=now, participants=participants
            )
        return TimeElapsed(phase=phase, suggested=suggested, change=change)

    def _default_minutes(self, phase: ContestPhase) -> int:
        if phase is ContestPhase.NEXT_STAGE:
            return self.next_stage_minutes
        return self.ongoing_minutes


__all__ = [
    "ContestStateMachine",
    "StatusChange",
    "TIMED_PHASES",
    "TimeElapsed",
]
