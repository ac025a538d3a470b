"""32-bit FNV-1 hashing used to pick shards."""

from __future__ import annotations

from typing import Protocol

PRIME = 16777619
OFFSET_BASIS = 2166136261
_MASK32 = 0xFFFFFFFF


class Hasher(Protocol):
    """Anything that maps a string key to an unsigned 32-bit integer."""

    def sum(self, key: str) -> int:
        ...


def fnv32(key: str | bytes) -> int:
    """Return the 32-bit FNV-1 hash of ``key`` (strings are hashed as UTF-8)."""
    data = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    value = OFFSET_BASIS
    for byte in data:
        value = (value * PRIME) & _MASK32
        value ^= byte
    return value


class Fnv32Hash:
    """Hasher based on 32-bit FNV-1."""

    def sum(self, key: str | bytes) -> int:
        return fnv32(key)

    def __repr__(self) -> str:
        return "Fnv32Hash()"


def default_hash() -> Fnv32Hash:
    """Return the default hasher."""
    return Fnv32Hash()