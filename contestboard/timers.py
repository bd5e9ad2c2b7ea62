"""Countdown helpers and a cancellable background timer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .db.utils import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Countdown:
    """Time left until a deadline, broken down for display."""

    days: int
    hours: int
    minutes: int
    seconds: int
    expired: bool

    @property
    def total_seconds(self) -> int:
        return ((self.days * 24 + self.hours) * 60 + self.minutes) * 60 + self.seconds

    def __str__(self) -> str:
        clock = f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"
        return f"{self.days}d {clock}" if self.days else clock


def _breakdown(deadline: datetime, now: datetime, *, with_days: bool) -> Countdown:
    remaining = int((as_utc(deadline) - as_utc(now)).total_seconds())
    if remaining <= 0:
        return Countdown(days=0, hours=0, minutes=0, seconds=0, expired=True)
    days, rest = divmod(remaining, 86400) if with_days else (0, remaining)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return Countdown(days=days, hours=hours, minutes=minutes, seconds=seconds, expired=False)


def time_remaining(end_time: datetime, now: Optional[datetime] = None) -> Countdown:
    """Hours/minutes/seconds left in a timed phase; hours are not folded into days."""
    return _breakdown(end_time, now or datetime.now(timezone.utc), with_days=False)


def time_until(scheduled: datetime, now: Optional[datetime] = None) -> Countdown:
    """Days/hours/minutes/seconds until a scheduled start."""
    return _breakdown(scheduled, now or datetime.now(timezone.utc), with_days=True)


class CountdownTimer:
    """Fire ``on_elapsed`` once when ``end_time`` is reached.

    Runs on a daemon :class:`threading.Timer`; :meth:`cancel` stops it. The
    callback should only enqueue work and return quickly.
    """

    def __init__(
        self,
        end_time: datetime,
        on_elapsed: Callable[[], None],
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.end_time = as_utc(end_time)
        self._on_elapsed = on_elapsed
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._timer: Optional[threading.Timer] = None
        self._fired = threading.Event()

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.is_alive()

    def start(self) -> "CountdownTimer":
        if self._timer is not None:
            raise RuntimeError("CountdownTimer has already been started")
        delay = max(0.0, (self.end_time - as_utc(self._clock())).total_seconds())
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True
        self._timer.start()
        return self

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._timer is not None:
            self._timer.join(timeout)

    def _fire(self) -> None:
        if self._fired.is_set():
            return
        self._fired.set()
        try:
            self._on_elapsed()
        except Exception:
            logger.exception("Countdown callback failed")


__all__ = ["Countdown", "CountdownTimer", "time_remaining", "time_until"]
