"""Drawing-number allocation against a :class:`ContestStore`."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..errors import ConflictError, ContestError, DrawExhaustedError
from ..models.participant import (
    MAX_DRAWING_NUMBER,
    MIN_DRAWING_NUMBER,
    DrawState,
    Participant,
)
from ..store.base import ContestStore
from .draw_number import validate_drawing_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrawOutcome:
    """Result of :meth:`DrawingNumberAllocator.draw`.

    Attributes
    ----------
    participant : Participant
        The participant after the draw.
    drawing_number : int
        The number now held by the participant.
    already_drawn : bool
        ``True`` when the participant had a number before this call and
        nothing was re-rolled.
    """

    participant: Participant
    drawing_number: int
    already_drawn: bool


class DrawingNumberAllocator:
    """Assign unique drawing numbers in ``[1, 999]``.

    The uniqueness check done here is optimistic: another actor may take the
    same number between the check and the write. The store's own uniqueness
    constraint settles such races and surfaces them as
    :class:`~contestboard.errors.ConflictError`, which this class re-raises
    after restoring the participant's previous local state.
    """

    def __init__(
        self,
        store: ContestStore,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create an allocator bound to ``store``.

        Parameters
        ----------
        store : ContestStore
            Backend used to look up holders and persist assignments.
        rng : Optional[random.Random], default: None
            Source of randomness for :meth:`draw_random`. Defaults to a
            ``random.SystemRandom`` instance.
        clock : Optional[Callable[[], datetime]], default: None
            Returns the current time; used for ``last_updated``.
        """
        self._store = store
        self._rng = rng or random.SystemRandom()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._in_progress: set[int] = set()

    def state_of(self, participant: Participant) -> DrawState:
        """Return ``DRAWING`` while a draw for ``participant`` is in flight."""
        if participant.draw_state is DrawState.DRAWN:
            return DrawState.DRAWN
        if participant.id in self._in_progress:
            return DrawState.DRAWING
        return DrawState.UNDRAWN

    def allocate(self, participant: Participant, requested_number: int) -> Participant:
        """Assign ``requested_number`` to ``participant``.

        Parameters
        ----------
        participant : Participant
            Participant to update. It is mutated in place on success.
        requested_number : int
            Number in ``[1, 999]``.

        Returns
        -------
        Participant
            ``participant`` with its new number and ``last_updated``.

        Raises
        ------
        ValidationError
            If ``requested_number`` is outside ``[1, 999]``.
        ConflictError
            If another participant already holds ``requested_number``, whether
            detected here or reported by the store.
        NotFoundError
            If the store no longer knows ``participant``.
        StoreError
            If the store fails.

        On any of these errors ``participant`` is left unchanged.
        """
        validate_drawing_number(requested_number)

        # Re-assigning the number a participant already holds is a no-op.
        if participant.drawing_number == requested_number:
            return participant

        for other in self._store.fetch_all_participants():
            if other.id != participant.id and other.drawing_number == requested_number:
                raise ConflictError(
                    f"Drawing number {requested_number} is already held by {other.name}",
                    drawing_number=requested_number,
                    holder_id=other.id,
                )

        previous_number = participant.drawing_number
        previous_updated = participant.last_updated
        participant.drawing_number = requested_number
        participant.touch(self._clock())
        try:
            stored = self._store.reassign_drawing_number(participant.id, requested_number)
        except ContestError:
            participant.drawing_number = previous_number
            participant.last_updated = previous_updated
            raise

        participant.last_updated = stored.last_updated
        logger.info(
            "Assigned drawing number %03d to participant %s", requested_number, participant.id
        )
        return participant

    def draw_random(
        self,
        participant: Participant,
        excluded_numbers: Iterable[int] = (),
    ) -> int:
        """Pick a number for ``participant`` uniformly from the free numbers.

        A participant who already holds a number gets that number back; nothing
        is re-rolled.

        Raises
        ------
        DrawExhaustedError
            If every number in ``[1, 999]`` is excluded.
        """
        if participant.draw_state is DrawState.DRAWN:
            return participant.drawing_number

        excluded = set(excluded_numbers)
        candidates = [
            number
            for number in range(MIN_DRAWING_NUMBER, MAX_DRAWING_NUMBER + 1)
            if number not in excluded
        ]
        if not candidates:
            raise DrawExhaustedError("No drawing numbers are left to draw from")
        return self._rng.choice(candidates)

    def draw(self, participant: Participant) -> DrawOutcome:
        """Run the full draw flow for ``participant``: pick, then allocate.

        ``Undrawn -> Drawing -> Drawn``. A participant already ``Drawn`` is
        reported with their existing number. Conflicts are raised to the
        caller and never retried here.
        """
        if participant.draw_state is DrawState.DRAWN:
            return DrawOutcome(
                participant=participant,
                drawing_number=participant.drawing_number,
                already_drawn=True,
            )

        self._in_progress.add(participant.id)
        try:
            excluded = self._store.assigned_drawing_numbers()
            number = self.draw_random(participant, excluded)
            self.allocate(participant, number)
        finally:
            self._in_progress.discard(participant.id)

        return DrawOutcome(
            participant=participant,
            drawing_number=participant.drawing_number,
            already_drawn=False,
        )


__all__ = ["DrawOutcome", "DrawingNumberAllocator"]
