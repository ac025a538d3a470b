"""One-shot timers with millisecond precision."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta

from zinxutil.delayfunc import DelayFunc

HOUR_NAME = "HOUR"
HOUR_INTERVAL = 60 * 60 * 1000
HOUR_SCALES = 12

MINUTE_NAME = "MINUTE"
MINUTE_INTERVAL = 60 * 1000
MINUTE_SCALES = 60

SECOND_NAME = "SECOND"
SECOND_INTERVAL = 1000
SECOND_SCALES = 60

TIMERS_MAX_CAP = 2048


def _as_seconds(duration: float | timedelta) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def unix_milli() -> int:
    """Return milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


@dataclass
class Timer:
    """A delayed call due at ``unix_ms`` milliseconds since the epoch."""

    delay_func: DelayFunc
    unix_ms: int

    def run(self) -> threading.Thread:
        """Fire the timer from a background thread and return that thread."""

        def fire() -> None:
            now = unix_milli()
            if self.unix_ms > now:
                time.sleep((self.unix_ms - now) / 1000)
            self.delay_func.call()

        thread = threading.Thread(target=fire, daemon=True)
        thread.start()
        return thread


def timer_at(delay_func: DelayFunc, unix_nano: int) -> Timer:
    """Create a timer due at ``unix_nano`` nanoseconds since the epoch."""
    return Timer(delay_func, unix_nano // 1_000_000)


def timer_after(delay_func: DelayFunc, duration: float | timedelta) -> Timer:
    """Create a timer due ``duration`` (seconds or timedelta) from now."""
    return timer_at(delay_func, time.time_ns() + int(_as_seconds(duration) * 1e9))