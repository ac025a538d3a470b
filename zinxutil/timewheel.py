"""Hierarchical time wheels for managing large numbers of timers."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

from zinxutil.timer import Timer, _as_seconds, unix_milli

_log = logging.getLogger(__name__)


class TimeWheel:
    """A ring of ``scales`` slots, each ``interval`` milliseconds wide."""

    def __init__(self, name: str, interval: int, scales: int, max_cap: int) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if scales < 1:
            raise ValueError("scales must be at least 1")
        self.name = name
        self.interval = int(interval)
        self.scales = scales
        self.max_cap = max_cap
        self.next_wheel: TimeWheel | None = None
        self._slots: list[dict[int, Timer]] = [{} for _ in range(scales)]
        self._cur = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        _log.info("Init timerWhell name = %s is Done!", name)

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._cur

    def __len__(self) -> int:
        with self._lock:
            return sum(len(slot) for slot in self._slots)

    def __contains__(self, timer_id: object) -> bool:
        with self._lock:
            return any(timer_id in slot for slot in self._slots)

    def _add_timer(self, timer_id: int, timer: Timer, force_next: bool) -> None:
        delay = timer.unix_ms - unix_milli()
        if delay >= self.interval:
            steps = delay // self.interval
            self._slots[(self._cur + steps) % self.scales][timer_id] = timer
        elif self.next_wheel is None:
            # On the finest wheel a timer whose slot is passing moves to the next
            # slot, otherwise nobody would ever collect it.
            index = (self._cur + 1) % self.scales if force_next else self._cur
            self._slots[index][timer_id] = timer
        else:
            self.next_wheel.add_timer(timer_id, timer)

    def add_timer(self, timer_id: int, timer: Timer) -> None:
        """Place a timer on this wheel or, if due within one slot, a finer one."""
        with self._lock:
            self._add_timer(timer_id, timer, False)

    def remove_timer(self, timer_id: int) -> None:
        """Remove the timer with this id from this wheel only."""
        with self._lock:
            for slot in self._slots:
                slot.pop(timer_id, None)

    def add_time_wheel(self, next_wheel: TimeWheel) -> None:
        """Attach a finer-grained wheel below this one."""
        self.next_wheel = next_wheel
        _log.info("Add timerWhell[%s]'s next [%s] is succ!", self.name, next_wheel.name)

    def tick(self) -> None:
        """Advance the wheel by one slot, redistributing the affected timers."""
        with self._lock:
            current = self._slots[self._cur]
            self._slots[self._cur] = {}
            for timer_id, timer in current.items():
                self._add_timer(timer_id, timer, True)

            next_index = (self._cur + 1) % self.scales
            upcoming = self._slots[next_index]
            self._slots[next_index] = {}
            for timer_id, timer in upcoming.items():
                self._add_timer(timer_id, timer, True)

            self._cur = next_index

    def _loop(self) -> None:
        while not self._stop.wait(self.interval / 1000):
            self.tick()

    def run(self) -> None:
        """Start turning the wheel in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name=f"timewheel-{self.name}", daemon=True
        )
        self._thread.start()
        _log.info("timerwheel name = %s is running...", self.name)

    def stop(self) -> None:
        """Stop the background thread started by run()."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def timers_within(self, duration: float | timedelta) -> dict[int, Timer]:
        """Take the finest wheel's current-slot timers due within ``duration``."""
        leaf = self
        while leaf.next_wheel is not None:
            leaf = leaf.next_wheel
        limit_ms = int(_as_seconds(duration) * 1000)
        with leaf._lock:
            now = unix_milli()
            slot = leaf._slots[leaf._cur]
            due = {tid: t for tid, t in slot.items() if t.unix_ms - now < limit_ms}
            for timer_id in due:
                del slot[timer_id]
        return due