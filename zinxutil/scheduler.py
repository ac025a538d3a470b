"""A timer scheduler built on three layered time wheels (hours, minutes, seconds)."""

from __future__ import annotations

import logging
import queue
import threading
from datetime import timedelta

from zinxutil.delayfunc import DelayFunc
from zinxutil.timer import (
    HOUR_INTERVAL,
    HOUR_NAME,
    HOUR_SCALES,
    MINUTE_INTERVAL,
    MINUTE_NAME,
    MINUTE_SCALES,
    SECOND_INTERVAL,
    SECOND_NAME,
    SECOND_SCALES,
    TIMERS_MAX_CAP,
    timer_after,
    timer_at,
    unix_milli,
)
from zinxutil.timewheel import TimeWheel

_log = logging.getLogger(__name__)

MAX_CHAN_BUFF = 2048
MAX_TIME_DELAY = 100  # milliseconds

_POLL = 0.1


class TimerScheduler:
    """Holds layered time wheels and queues the delayed calls that fall due."""

    def __init__(self) -> None:
        second = TimeWheel(SECOND_NAME, SECOND_INTERVAL, SECOND_SCALES, TIMERS_MAX_CAP)
        minute = TimeWheel(MINUTE_NAME, MINUTE_INTERVAL, MINUTE_SCALES, TIMERS_MAX_CAP)
        hour = TimeWheel(HOUR_NAME, HOUR_INTERVAL, HOUR_SCALES, TIMERS_MAX_CAP)

        hour.add_time_wheel(minute)
        minute.add_time_wheel(second)

        for wheel in (second, minute, hour):
            wheel.run()

        self.wheels: tuple[TimeWheel, ...] = (hour, minute, second)
        self.trigger_queue: queue.Queue[DelayFunc] = queue.Queue(maxsize=MAX_CHAN_BUFF)
        self._last_id = 0
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._threads: list[threading.Thread] = []

    def _next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def create_timer_at(self, delay_func: DelayFunc, unix_nano: int) -> int:
        """Schedule ``delay_func`` at ``unix_nano`` ns since the epoch; return its id."""
        with self._lock:
            timer_id = self._next_id()
            self.wheels[0].add_timer(timer_id, timer_at(delay_func, unix_nano))
            return timer_id

    def create_timer_after(
        self, delay_func: DelayFunc, duration: float | timedelta
    ) -> int:
        """Schedule ``delay_func`` after ``duration`` (seconds or timedelta); return its id."""
        with self._lock:
            timer_id = self._next_id()
            self.wheels[0].add_timer(timer_id, timer_after(delay_func, duration))
            return timer_id

    def cancel_timer(self, timer_id: int) -> None:
        """Remove the timer with this id from every wheel."""
        with self._lock:
            for wheel in self.wheels:
                wheel.remove_timer(timer_id)

    def _put(self, delay_func: DelayFunc) -> None:
        while not self._stopped.is_set():
            try:
                self.trigger_queue.put(delay_func, timeout=_POLL)
                return
            except queue.Full:
                continue

    def _dispatch(self) -> None:
        while not self._stopped.is_set():
            now = unix_milli()
            due = self.wheels[0].timers_within(MAX_TIME_DELAY / 1000)
            for timer in due.values():
                if abs(now - timer.unix_ms) > MAX_TIME_DELAY:
                    _log.error(
                        "want call at %d; real call at %d; delay %d",
                        timer.unix_ms,
                        now,
                        now - timer.unix_ms,
                    )
                self._put(timer.delay_func)
            self._stopped.wait(MAX_TIME_DELAY / 2 / 1000)

    def _execute(self) -> None:
        while not self._stopped.is_set():
            try:
                delay_func = self.trigger_queue.get(timeout=_POLL)
            except queue.Empty:
                continue
            threading.Thread(target=delay_func.call, daemon=True).start()

    def _spawn(self, target, name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def start(self) -> None:
        """Begin moving due calls onto ``trigger_queue`` in a background thread."""
        self._spawn(self._dispatch, "timer-scheduler")

    def _start_executor(self) -> None:
        self._spawn(self._execute, "timer-executor")

    def stop(self) -> None:
        """Stop the background threads and the wheels."""
        self._stopped.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()
        self._threads.clear()
        for wheel in self.wheels:
            wheel.stop()

    def __enter__(self) -> TimerScheduler:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def new_auto_exec_timer_scheduler() -> TimerScheduler:
    """Return a started scheduler that also runs every due call in its own thread."""
    scheduler = TimerScheduler()
    scheduler.start()
    scheduler._start_executor()
    return scheduler