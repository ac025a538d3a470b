import threading
import time
from datetime import timedelta

from zinxutil.delayfunc import DelayFunc
from zinxutil.timer import timer_after, timer_at, unix_milli


def test_unix_milli_matches_wall_clock():
    assert abs(unix_milli() - time.time() * 1000) < 50


def test_timer_at_truncates_to_milliseconds():
    timer = timer_at(DelayFunc(print), 5_000_000_123)
    assert timer.unix_ms == 5000


def test_timer_after_seconds_and_timedelta():
    before = unix_milli()
    by_float = timer_after(DelayFunc(print), 2)
    by_delta = timer_after(DelayFunc(print), timedelta(seconds=2))
    after = unix_milli()
    for timer in (by_float, by_delta):
        assert before + 2000 <= timer.unix_ms <= after + 2000


def test_timer_run_fires_after_delay():
    fired = threading.Event()
    start = time.monotonic()
    thread = timer_after(DelayFunc(fired.set), 0.05).run()
    thread.join(timeout=2)
    assert fired.is_set()
    assert time.monotonic() - start >= 0.04


def test_past_timer_fires_immediately():
    fired = threading.Event()
    thread = timer_at(DelayFunc(fired.set), 0).run()
    thread.join(timeout=2)
    assert fired.is_set()


def test_several_timers_fire_no_earlier_than_due():
    fired = {}
    lock = threading.Lock()

    def my_func(number, delay_ms):
        with lock:
            fired[number] = unix_milli()

    before = unix_milli()
    timers = [
        timer_after(DelayFunc(my_func, [i, 30 * i]), 0.03 * i) for i in range(5)
    ]
    for i, timer in enumerate(timers):
        assert timer.unix_ms >= before + 30 * i

    threads = [timer.run() for timer in timers]
    for thread in threads:
        thread.join(timeout=3)

    assert sorted(fired) == [0, 1, 2, 3, 4]
    for i, timer in enumerate(timers):
        assert fired[i] >= timer.unix_ms