"""Dashboard controller: keeps rankings, rank changes and the outcome in sync with a store."""

from __future__ import annotations

import hmac
import logging
import queue
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from . import workflows
from .config import Settings
from .drawing.allocator import DrawingNumberAllocator, DrawOutcome
from .errors import AuthorizationError, DrawingClosedError, NotFoundError
from .models import ContestPhase, ContestStatus, Participant
from .db.utils import as_utc
from .scoring.ranking import Ranked, rank, rank_map
from .status import ContestStateMachine, StatusChange, TimeElapsed
from .store.base import ContestStore, Subscription
from .timers import CountdownTimer

logger = logging.getLogger(__name__)

_TIME_ELAPSED = "time_elapsed"


@dataclass
class SessionContext:
    """Who is driving this controller.

    The static admin code is a convenience gate for a single operator, not a
    security boundary.
    """

    is_admin: bool = False
    participant_id: Optional[int] = None
    participant_name: Optional[str] = None

    def login_admin(self, code: str, expected_code: Optional[str]) -> bool:
        if not expected_code or not code:
            return False
        self.is_admin = hmac.compare_digest(code.encode(), expected_code.encode())
        return self.is_admin

    def logout_admin(self) -> None:
        self.is_admin = False

    def login_participant(self, participant: Participant) -> None:
        self.participant_id = participant.id
        self.participant_name = participant.name

    def logout_participant(self) -> None:
        self.participant_id = None
        self.participant_name = None


@dataclass(frozen=True)
class RankChange:
    """A participant moved between two consecutive refreshes."""

    participant_id: int
    name: str
    old_rank: int
    new_rank: int

    @property
    def improved(self) -> bool:
        return self.new_rank < self.old_rank

    @property
    def direction(self) -> str:
        return "up" if self.improved else "down"

    def __str__(self) -> str:
        return f"{self.name} moved {self.direction} from rank {self.old_rank} to {self.new_rank}"


class DashboardController:
    """Coordinate the store, ranking engine, allocator and state machine.

    On every participants notification the controller re-fetches, re-ranks,
    diffs each participant's rank against the previous refresh and reports
    every change. The previous-rank snapshot lives only in memory and is
    reset by :meth:`load`. In ``finished``/``next_stage`` the outcome is
    recomputed after every refresh so late score edits are reflected.
    """

    def __init__(
        self,
        store: ContestStore,
        session: Optional[SessionContext] = None,
        *,
        settings: Optional[Settings] = None,
        state_machine: Optional[ContestStateMachine] = None,
        allocator: Optional[DrawingNumberAllocator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_rank_change: Optional[Callable[[RankChange], None]] = None,
        highlight_seconds: float = 5.0,
    ) -> None:
        self.store = store
        self.session = session or SessionContext()
        self.settings = settings or Settings()
        self.state_machine = state_machine or ContestStateMachine(
            ongoing_minutes=self.settings.ongoing_minutes,
            next_stage_minutes=self.settings.next_stage_minutes,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.allocator = allocator or DrawingNumberAllocator(store, clock=self._clock)
        self._on_rank_change = on_rank_change
        self._highlight = timedelta(seconds=highlight_seconds)

        self.participants: list[Participant] = []
        self.ranking: list[Ranked[Participant]] = []
        self.status: Optional[ContestStatus] = None
        self.outcome = workflows.ContestOutcome(ranking=[])
        self.notifications: list[RankChange] = []
        self.advisories: list[TimeElapsed] = []

        self._previous_ranks: dict[int, int] = {}
        self._recently_updated: dict[int, datetime] = {}
        self._subscription: Optional[Subscription] = None
        self._timer: Optional[CountdownTimer] = None
        self._pending: "queue.SimpleQueue[str]" = queue.SimpleQueue()

    # -------- lifecycle --------
    def load(self) -> None:
        """Fetch everything from scratch, forgetting previous ranks."""
        self._previous_ranks = {}
        self._recently_updated = {}
        self.refresh_status()
        self.refresh_participants()

    def start(self) -> "DashboardController":
        """Load, then follow store notifications until :meth:`stop`."""
        self.load()
        if self._subscription is None:
            self._subscription = self.store.subscribe(
                self.refresh_participants, self.refresh_status
            )
        self._arm_timer()
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._cancel_timer()

    def __enter__(self) -> "DashboardController":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def following(self) -> bool:
        return self._subscription is not None

    # -------- coordination --------
    def refresh_participants(self) -> list[RankChange]:
        """Re-fetch, re-rank and report rank changes since the previous refresh.

        A failed fetch propagates and leaves the controller's state untouched. A
        failure to write back ``has_tie`` propagates after the rank changes have
        been reported.
        """
        participants = self.store.fetch_all_participants()
        ranking = rank(participants)
        now = self._clock()

        previous = {p.id: p for p in self.participants}
        for participant in participants:
            before = previous.get(participant.id)
            if before is not None and before.last_updated != participant.last_updated:
                self._recently_updated[participant.id] = now + self._highlight

        changes: list[RankChange] = []
        for entry in ranking:
            old_rank = self._previous_ranks.get(entry.participant.id)
            if old_rank is not None and old_rank != entry.rank:
                changes.append(
                    RankChange(
                        participant_id=entry.participant.id,
                        name=entry.participant.name,
                        old_rank=old_rank,
                        new_rank=entry.rank,
                    )
                )

        self.participants = participants
        self.ranking = ranking
        self._previous_ranks = rank_map(ranking)
        self.outcome = workflows.resolve_outcome(self.participants, self.status)

        for change in changes:
            logger.info("Rank change: %s", change)
            self.notifications.append(change)
            if self._on_rank_change is not None:
                self._on_rank_change(change)

        # Rank changes go out before has_tie is written, which can fail.
        self._sync_has_tie()
        return changes

    def refresh_status(self) -> Optional[ContestStatus]:
        self.status = self.store.fetch_status()
        self._recompute_outcome()
        self._arm_timer()
        return self.status

    def _recompute_outcome(self) -> None:
        self.outcome = workflows.resolve_outcome(self.participants, self.status)
        self._sync_has_tie()

    def _sync_has_tie(self) -> None:
        status = self.status
        if (
            status is not None
            and status.contest_phase is ContestPhase.FINISHED
            and self.participants
            and bool(status.has_tie) != self.outcome.is_tie
            and self.session.is_admin
        ):
            # Late score edits after finishing can create or break a tie.
            logger.info("Tie status changed after finishing: has_tie=%s", self.outcome.is_tie)
            self.status = self.store.save_status(has_tie=self.outcome.is_tie)

    def recently_updated(self, now: Optional[datetime] = None) -> set[int]:
        """Ids of participants changed within the highlight window."""
        now = now or self._clock()
        self._recently_updated = {
            pid: expiry for pid, expiry in self._recently_updated.items() if expiry > now
        }
        return set(self._recently_updated)

    def participant(self, participant_id: int) -> Participant:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        raise NotFoundError(f"No participant with id {participant_id}")

    def _after_mutation(self) -> None:
        # A subscribed controller is refreshed by the store's notification.
        if self._subscription is None:
            self.refresh_status()
            self.refresh_participants()

    # -------- timers --------
    def _arm_timer(self) -> None:
        status = self.status
        end_time = status.end_time if status is not None else None
        if (
            self._timer is not None
            and end_time is not None
            and self._timer.end_time == as_utc(end_time)
        ):
            return
        self._cancel_timer()
        if self._subscription is None or status is None or end_time is None:
            return
        if status.contest_phase not in (ContestPhase.ONGOING, ContestPhase.NEXT_STAGE):
            return
        self._timer = CountdownTimer(
            end_time, lambda: self._pending.put(_TIME_ELAPSED), clock=self._clock
        ).start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def process_pending(self) -> int:
        """Handle events queued by background timers; returns how many ran."""
        handled = 0
        while True:
            try:
                event = self._pending.get_nowait()
            except queue.Empty:
                return handled
            if event == _TIME_ELAPSED:
                self.handle_time_elapsed()
            handled += 1

    def handle_time_elapsed(self, now: Optional[datetime] = None) -> Optional[TimeElapsed]:
        """React to the end of a timed phase.

        Always records an advisory. The automatic transition only happens
        when it is enabled in the settings and an administrator drives this
        controller.
        """
        if self.status is None:
            return None
        auto = self.settings.auto_transition and self.session.is_admin
        advisory = self.state_machine.on_time_elapsed(
            self.status,
            now=now or self._clock(),
            auto_transition=auto,
            participants=self.participants,
        )
        if advisory is None:
            return None
        logger.info(
            "Time is up for %s; suggested next phase: %s",
            advisory.phase.value,
            advisory.suggested.value,
        )
        self.advisories.append(advisory)
        if advisory.change is not None:
            self.status = self.store.save_status(**advisory.change.changes)
            self._after_mutation()
        return advisory

    # -------- administrator actions --------
    def login_admin(self, code: str) -> bool:
        """Unlock administrator actions with the configured access code."""
        if not self.session.login_admin(code, self.settings.admin_code):
            logger.warning("Rejected administrator login")
            return False
        return True

    def _require_admin(self) -> None:
        if not self.session.is_admin:
            raise AuthorizationError("This action requires an administrator session")

    def initialize_roster(self, names: Optional[Iterable[str]] = None) -> list[Participant]:
        self._require_admin()
        # A fresh roster is a reload: ranks from the old roster are meaningless.
        self._previous_ranks = {}
        created = workflows.initialize_participants(
            self.store, names if names is not None else self.settings.roster
        )
        self._after_mutation()
        return created

    def update_inputs(self, participant_id: int, **inputs: Any) -> Participant:
        """Change ``education``/``experience``/``test_score`` for a participant."""
        self._require_admin()
        saved = workflows.update_participant_inputs(
            self.store, self.participant(participant_id), now=self._clock(), **inputs
        )
        self._after_mutation()
        return saved

    def set_next_stage_score(self, participant_id: int, raw_score: Any) -> Participant:
        self._require_admin()
        saved = workflows.set_next_stage_score(
            self.store, self.participant(participant_id), raw_score
        )
        self._after_mutation()
        return saved

    def reassign_drawing_number(self, participant_id: int, raw_number: Any) -> Participant:
        self._require_admin()
        updated = workflows.reassign_drawing_number(
            self.store,
            self.participant(participant_id),
            raw_number,
            allocator=self.allocator,
        )
        self._after_mutation()
        return updated

    def change_status(
        self,
        target: ContestPhase | str,
        *,
        duration_minutes: Optional[int] = None,
    ) -> StatusChange:
        self._require_admin()
        self.status, change = workflows.change_status(
            self.store,
            target,
            state_machine=self.state_machine,
            now=self._clock(),
            duration_minutes=duration_minutes,
            participants=self.participants,
        )
        self._after_mutation()
        return change

    def open_drawing(self) -> ContestStatus:
        self._require_admin()
        self.status = workflows.set_drawing_open(self.store, True)
        self._after_mutation()
        return self.status

    def close_drawing(self) -> ContestStatus:
        self._require_admin()
        self.status = workflows.set_drawing_open(self.store, False)
        self._after_mutation()
        return self.status

    # -------- participant actions --------
    def login_participant(self, name: str) -> Participant:
        participant = workflows.find_participant(self.store, name)
        self.session.login_participant(participant)
        return participant

    def draw(self) -> DrawOutcome:
        """Draw a number for the logged-in participant.

        A participant who already drew gets their existing number back.

        Raises
        ------
        AuthorizationError
            If no participant is logged in.
        DrawingClosedError
            If the drawing phase is not open.
        ConflictError
            If another participant took the picked number first.
        """
        if self.session.participant_name is None:
            raise AuthorizationError("Log in as a participant before drawing")
        participant = workflows.find_participant(self.store, self.session.participant_name)
        if participant.drawing_number > 0:
            return DrawOutcome(
                participant=participant,
                drawing_number=participant.drawing_number,
                already_drawn=True,
            )

        status = self.store.fetch_status()
        if status is None or not status.drawing_open:
            raise DrawingClosedError("The drawing phase has not been opened yet")

        outcome = self.allocator.draw(participant)
        logger.info("%s drew %03d", participant.name, outcome.drawing_number)
        self._after_mutation()
        return outcome


__all__ = ["DashboardController", "RankChange", "SessionContext"]
