# zinxutil

Small building blocks for long-running servers, using only the standard library:

- `zinxutil.timer`, `zinxutil.timewheel`, `zinxutil.scheduler` – one-shot timers,
  hierarchical time wheels and a scheduler built on an hour, a minute and a
  second wheel, meant for many coarse timers such as connection timeouts.
- `zinxutil.delayfunc` – `DelayFunc`, a function bundled with its arguments.
- `zinxutil.shardmap` – `ShardLockMap`, a thread-safe string-keyed map split into
  shards, each with its own lock.
- `zinxutil.hashing` – 32-bit FNV-1 hashing (`fnv32`, `Fnv32Hash`), used to pick shards.
- `zinxutil.snowflake` – `IdWorker`, which produces 64-bit, time-ordered IDs.
- `zinxutil.rotating` – `RotatingWriter`, a buffered file writer that rotates by
  day and by size and zips rotated files; plus `zip_to_file` and `zip_path`.

Python 3.10 or later; no third-party dependencies.

## Delayed calls and timers

```python
from zinxutil.delayfunc import DelayFunc
from zinxutil.timer import timer_after

def greet(name, greeting):
    print(greeting, name)

call = DelayFunc(greet, ["world", "hello"])
call.call()                       # prints "hello world"
timer_after(call, 2.0).run()      # fires once, from a background thread, in 2 s
```

`DelayFunc.call()` logs an exception raised by the function and returns `None`
instead of propagating it. `timer_after` takes seconds or a `timedelta`;
`timer_at` takes an absolute time in Unix nanoseconds. `unix_milli()` returns
the current time in milliseconds since the epoch.

## Scheduler

```python
from zinxutil.scheduler import new_auto_exec_timer_scheduler

scheduler = new_auto_exec_timer_scheduler()
timer_id = scheduler.create_timer_after(DelayFunc(greet, ["world", "hello"]), 3.0)
scheduler.cancel_timer(timer_id)   # removed from every wheel
scheduler.stop()
```

`TimerScheduler()` builds and starts the three wheels. `start()` begins moving
due calls onto `scheduler.trigger_queue` (a `queue.Queue` of `DelayFunc`,
bounded at 2048); you then take them off and call them yourself.
`new_auto_exec_timer_scheduler()` additionally runs each due call in its own
thread. Timer ids count up from 1. A `TimerScheduler` is also a context
manager that calls `stop()` on exit.

## Time wheels

A `TimeWheel(name, interval_ms, scales, max_cap)` is a ring of slots.
`add_time_wheel()` attaches a finer wheel below; `add_timer(id, timer)` places a
timer on the slot it falls in, or hands it to the finer wheel if it is due
within one slot. `tick()` advances the wheel by one slot, `run()`/`stop()`
turn it in a background thread, and `timers_within(duration)` takes the timers
in the finest wheel's current slot that are due within `duration`.

## Sharded map

```python
from zinxutil.shardmap import ShardLockMap

users = ShardLockMap()                  # 32 shards, FNV-1 hashing
users.set("alice", {"age": 30})
users.set_nx("alice", {"age": 99})      # False: key exists, nothing stored
"alice" in users                         # True
users.pop("alice")                       # KeyError if absent
users.load_json('{"a": 1, "b": 2}')
users.to_json()                          # '{"a":1,"b":2}'
```

Also: `get`, `mset`, `remove`, `remove_cb`, `clear`, `is_empty`, `len()`,
`items()`, `keys()`, `iter_buffered()` (an iterator over a snapshot) and
`iter_cb(callback)`. A custom hasher (any object with `sum(key) -> int`) and
shard count can be passed to the constructor.

## Snowflake IDs

```python
from zinxutil.snowflake import IdWorker

worker = IdWorker(1)          # worker id 0..1023, else ValueError
new_id = worker.next_id()
```

An ID is the millisecond timestamp, the 10-bit worker id and a 12-bit
sequence. `next_id()` raises `ClockMovedBackwardsError` if the clock reads
earlier than the previous ID's timestamp.

## Rotating writer

```python
from zinxutil.rotating import RotatingWriter

with RotatingWriter("logs/app.log") as log:
    log.write(b"server started\n")
```

The file is rotated when the day changes or when it would reach `max_size`
(64 MiB by default). A rotated file is archived next to the log as
`app.2024-01-31-235959.000000.zip`; on a day change, archives older than
`max_age` days (31 by default) are removed. Set `console = True` to echo writes
to standard error. Buffered data is flushed every 5 seconds, on `flush()` and
on `close()`.

`zip_to_file(dst, src)` and `zip_path(dst_stream, src)` compress any file or
directory with deflate.

## What it does not do

This is a library only: it has no command-line interface, does no networking
of its own and keeps nothing beyond the process except the files written by
`RotatingWriter`.

## Running the tests

```
pip install -e ".[test]"
pytest
```