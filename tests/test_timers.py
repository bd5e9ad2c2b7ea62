from __future__ import annotations

import threading
import unittest
from datetime import datetime, timedelta, timezone

from contestboard.timers import CountdownTimer, time_remaining, time_until

NOW = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


class CountdownTests(unittest.TestCase):
    def test_time_remaining_keeps_hours(self) -> None:
        countdown = time_remaining(NOW + timedelta(hours=26, minutes=5, seconds=9), NOW)
        self.assertEqual(
            (countdown.days, countdown.hours, countdown.minutes, countdown.seconds),
            (0, 26, 5, 9),
        )
        self.assertFalse(countdown.expired)
        self.assertEqual(str(countdown), "26:05:09")

    def test_time_until_folds_days(self) -> None:
        countdown = time_until(NOW + timedelta(days=2, hours=3, seconds=1), NOW)
        self.assertEqual((countdown.days, countdown.hours), (2, 3))
        self.assertEqual(countdown.total_seconds, 2 * 86400 + 3 * 3600 + 1)
        self.assertEqual(str(countdown), "2d 03:00:01")

    def test_past_deadline_is_expired(self) -> None:
        countdown = time_remaining(NOW - timedelta(seconds=1), NOW)
        self.assertTrue(countdown.expired)
        self.assertEqual(countdown.total_seconds, 0)


class CountdownTimerTests(unittest.TestCase):
    def test_fires_once_when_deadline_has_passed(self) -> None:
        fired = threading.Event()
        calls: list[int] = []

        def on_elapsed() -> None:
            calls.append(1)
            fired.set()

        timer = CountdownTimer(NOW, on_elapsed, clock=lambda: NOW + timedelta(seconds=5))
        timer.start()
        self.assertTrue(fired.wait(2.0))
        timer.join(2.0)
        self.assertTrue(timer.fired)
        self.assertEqual(calls, [1])

    def test_cancel_prevents_firing(self) -> None:
        calls: list[int] = []
        timer = CountdownTimer(
            NOW + timedelta(hours=1), lambda: calls.append(1), clock=lambda: NOW
        )
        timer.start()
        self.assertTrue(timer.running)
        timer.cancel()
        timer.join(2.0)
        self.assertFalse(timer.fired)
        self.assertEqual(calls, [])

    def test_cannot_start_twice(self) -> None:
        timer = CountdownTimer(NOW + timedelta(hours=1), lambda: None, clock=lambda: NOW)
        timer.start()
        try:
            with self.assertRaises(RuntimeError):
                timer.start()
        finally:
            timer.cancel()

    def test_callback_errors_are_logged(self) -> None:
        def boom() -> None:
            raise RuntimeError("boom")

        timer = CountdownTimer(NOW, boom, clock=lambda: NOW)
        with self.assertLogs("contestboard.timers", level="ERROR"):
            timer.start()
            timer.join(2.0)
        self.assertTrue(timer.fired)


if __name__ == "__main__":
    unittest.main()
