"""A thread-safe string-keyed map split into independently locked shards."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from zinxutil.hashing import Hasher, default_hash

DEFAULT_SHARD_COUNT = 32


class Item(NamedTuple):
    """A key and its value, as produced by iteration over the map."""

    key: str
    value: Any


@dataclass
class _Shard:
    items: dict[str, Any] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class ShardLockMap:
    """A string-to-anything map whose keys are spread over locked shards."""

    def __init__(
        self,
        hasher: Hasher | None = None,
        shard_count: int = DEFAULT_SHARD_COUNT,
    ) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self._hasher = hasher if hasher is not None else default_hash()
        self._shards = [_Shard() for _ in range(shard_count)]

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def shard_index(self, key: str) -> int:
        """Return the index of the shard that holds ``key``."""
        return self._hasher.sum(key) % len(self._shards)

    def _shard(self, key: str) -> _Shard:
        return self._shards[self.shard_index(key)]

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.items)
        return total

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        shard = self._shard(key)
        with shard.lock:
            return key in shard.items

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value under ``key``, or ``default`` if absent."""
        shard = self._shard(key)
        with shard.lock:
            return shard.items.get(key, default)

    def set(self, key: str, value: Any) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.items[key] = value

    def set_nx(self, key: str, value: Any) -> bool:
        """Store ``value`` only if ``key`` is absent; return whether it was stored."""
        shard = self._shard(key)
        with shard.lock:
            if key in shard.items:
                return False
            shard.items[key] = value
            return True

    def mset(self, data: Mapping[str, Any]) -> None:
        for key, value in data.items():
            self.set(key, value)

    def remove(self, key: str) -> None:
        """Delete ``key`` if present."""
        shard = self._shard(key)
        with shard.lock:
            shard.items.pop(key, None)

    def remove_cb(
        self, key: str, callback: Callable[[str, Any, bool], bool]
    ) -> bool:
        """Call ``callback(key, value, exists)`` under the shard lock.

        The key is removed if it exists and the callback returns true.
        The callback's result is returned either way.
        """
        shard = self._shard(key)
        with shard.lock:
            exists = key in shard.items
            value = shard.items.get(key)
            remove = bool(callback(key, value, exists))
            if remove and exists:
                del shard.items[key]
            return remove

    def pop(self, key: str) -> Any:
        """Remove ``key`` and return its value; raise KeyError if absent."""
        shard = self._shard(key)
        with shard.lock:
            return shard.items.pop(key)

    def clear(self) -> None:
        """Remove every item present at the time of the call."""
        for item in self.iter_buffered():
            self.remove(item.key)

    def is_empty(self) -> bool:
        return len(self) == 0

    def _snapshot(self) -> list[Item]:
        snapshot: list[Item] = []
        for shard in self._shards:
            with shard.lock:
                snapshot.extend(Item(k, v) for k, v in shard.items.items())
        return snapshot

    def iter_buffered(self) -> Iterator[Item]:
        """Return an iterator over a snapshot of the map taken now."""
        return iter(self._snapshot())

    def items(self) -> dict[str, Any]:
        return dict(self._snapshot())

    def keys(self) -> list[str]:
        return [item.key for item in self._snapshot()]

    def iter_cb(self, callback: Callable[[str, Any], None]) -> None:
        """Call ``callback(key, value)`` for every item, holding each shard's lock."""
        for shard in self._shards:
            with shard.lock:
                for key, value in shard.items.items():
                    callback(key, value)

    def to_json(self) -> str:
        """Serialise the contents as a compact JSON object with sorted keys."""
        return json.dumps(self.items(), sort_keys=True, separators=(",", ":"))

    def load_json(self, data: str | bytes) -> None:
        """Set every key of a JSON object into the map."""
        decoded = json.loads(data)
        if not isinstance(decoded, dict):
            raise ValueError("JSON document must be an object")
        self.mset(decoded)

    def __repr__(self) -> str:
        return f"ShardLockMap(shard_count={len(self._shards)}, size={len(self)})"