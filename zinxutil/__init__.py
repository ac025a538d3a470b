"""Timing wheels and a timer scheduler, a sharded concurrent map, FNV hashing, snowflake IDs and a rotating file writer."""

__version__ = "0.1.0"

__all__ = [
    "delayfunc",
    "hashing",
    "rotating",
    "scheduler",
    "shardmap",
    "snowflake",
    "timer",
    "timewheel",
]