"""Store interface and the in-process change feed shared by every backend."""

from __future__ import annotations

import abc
import logging
import threading
from typing import Callable, Optional, Sequence

from ..models import ContestStatus, Participant

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Subscription:
    """Handle returned by :meth:`ContestStore.subscribe`.

    Calling :meth:`unsubscribe` more than once is harmless.
    """

    def __init__(self, feed: "ChangeFeed", token: int) -> None:
        self._feed = feed
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove(self._token)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class ChangeFeed:
    """Fan-out of "participants changed" / "status changed" notifications.

    Notifications carry no payload; listeners are expected to re-fetch.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_token = 0
        self._listeners: dict[int, tuple[Optional[Listener], Optional[Listener]]] = {}

    def subscribe(
        self,
        on_participants_changed: Optional[Listener] = None,
        on_status_changed: Optional[Listener] = None,
    ) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = (on_participants_changed, on_status_changed)
        return Subscription(self, token)

    def _remove(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish_participants_changed(self) -> None:
        self._publish(0)

    def publish_status_changed(self) -> None:
        self._publish(1)

    def _publish(self, slot: int) -> None:
        with self._lock:
            callbacks = [pair[slot] for pair in self._listeners.values()]
        for callback in callbacks:
            if callback is None:
                continue
            try:
                callback()
            except Exception:
                # One broken listener must not starve the others.
                logger.exception("Change listener %r failed", callback)


class ContestStore(abc.ABC):
    """Persistence contract for participants and the contest status.

    Every mutating method raises on failure and leaves the stored data unchanged:

    * :class:`~contestboard.errors.ConflictError` for a taken drawing number,
    * :class:`~contestboard.errors.NotFoundError` for an unknown participant,
    * :class:`~contestboard.errors.StoreError` for any backend failure.

    Successful mutations publish to :attr:`feed`.
    """

    def __init__(self, feed: Optional[ChangeFeed] = None) -> None:
        self.feed = feed or ChangeFeed()

    @abc.abstractmethod
    def fetch_all_participants(self) -> list[Participant]:
        """Return every participant ordered by id."""

    @abc.abstractmethod
    def fetch_status(self) -> Optional[ContestStatus]:
        """Return the contest status, or ``None`` if it has never been written."""

    @abc.abstractmethod
    def save_participant(self, participant: Participant) -> Participant:
        """Persist the scoring inputs, cached total and ``last_updated`` of a participant."""

    @abc.abstractmethod
    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        """Give ``participant_id`` the drawing number ``new_number`` (0 clears it)."""

    @abc.abstractmethod
    def bulk_reset_participants(
        self, participants: Sequence[Participant]
    ) -> list[Participant]:
        """Replace every stored participant with ``participants``."""

    @abc.abstractmethod
    def save_status(self, **changes) -> ContestStatus:
        """Apply a partial update to the status row, creating it if needed."""

    @abc.abstractmethod
    def save_next_stage_score(
        self, participant_id: int, score: Optional[float]
    ) -> Participant:
        """Store the tie-break score for ``participant_id`` (``None`` clears it)."""

    @abc.abstractmethod
    def find_participant_by_name(self, name: str) -> Optional[Participant]:
        """Return the participant called ``name``, or ``None``."""

    def subscribe(
        self,
        on_participants_changed: Optional[Listener] = None,
        on_status_changed: Optional[Listener] = None,
    ) -> Subscription:
        """Register change callbacks; returns a handle with ``unsubscribe()``."""
        return self.feed.subscribe(on_participants_changed, on_status_changed)

    def assigned_drawing_numbers(self) -> set[int]:
        """Return every nonzero drawing number currently held."""
        return {
            p.drawing_number for p in self.fetch_all_participants() if p.drawing_number > 0
        }


__all__ = ["ChangeFeed", "ContestStore", "Listener", "Subscription"]
