import json
import threading
from dataclasses import dataclass

import pytest

from zinxutil.shardmap import Item, ShardLockMap


@dataclass(frozen=True)
class User:
    name: str


def filled(total=100, **kwargs):
    slm = ShardLockMap(**kwargs)
    for i in range(total):
        slm.set(str(i), User(str(i)))
    return slm


def test_new_map_is_empty():
    slm = ShardLockMap()
    assert len(slm) == 0
    assert slm.is_empty()
    assert slm.shard_count == 32


def test_invalid_shard_count():
    with pytest.raises(ValueError):
        ShardLockMap(shard_count=0)


def test_set_mset_set_nx():
    slm = ShardLockMap()
    slm.set("user", "14March")
    slm.mset({"aaa": 111, "bbb": "222"})
    assert slm.set_nx("user", "other") is False
    assert slm.set_nx("bo", User("bo")) is True
    assert len(slm) == 4
    assert slm.get("user") == "14March"
    assert slm.get("aaa") == 111


def test_get():
    slm = ShardLockMap()
    assert slm.get("user") is None
    assert slm.get("user", "fallback") == "fallback"
    slm.set("tony", User("tony"))
    assert slm.get("tony") == User("tony")


def test_has():
    slm = ShardLockMap()
    assert "Money" not in slm
    slm.set("user", "14March")
    assert "user" in slm
    assert 5 not in slm


def test_count():
    assert len(filled(100)) == 100


def test_remove():
    slm = ShardLockMap()
    slm.set("david", User("David"))
    slm.remove("david")
    assert len(slm) == 0
    assert "david" not in slm
    assert slm.get("david") is None
    slm.remove("user")
    assert slm.is_empty()


def test_remove_cb():
    slm = ShardLockMap()
    tony, david = User("tony"), User("david")
    slm.set("tony", tony)
    slm.set("david", david)
    seen = {}

    def cb(key, value, exists):
        seen.update(key=key, value=value, exists=exists)
        return isinstance(value, User) and value.name == "tony"

    assert slm.remove_cb("tony", cb) is True
    assert seen == {"key": "tony", "value": tony, "exists": True}
    assert "tony" not in slm

    assert slm.remove_cb("david", cb) is False
    assert seen == {"key": "david", "value": david, "exists": True}
    assert "david" in slm

    assert slm.remove_cb("danny", cb) is False
    assert seen == {"key": "danny", "value": None, "exists": False}
    assert "danny" not in slm


def test_remove_cb_true_on_missing_key_creates_nothing():
    slm = ShardLockMap()
    assert slm.remove_cb("ghost", lambda k, v, e: True) is True
    assert len(slm) == 0


def test_pop():
    slm = ShardLockMap()
    with pytest.raises(KeyError):
        slm.pop("user")
    slm.set("user", "14March")
    assert slm.pop("user") == "14March"
    assert "user" not in slm


def test_buffered_iterator():
    slm = filled(100)
    items = list(slm.iter_buffered())
    assert len(items) == 100
    assert all(isinstance(item, Item) and item.value is not None for item in items)
    assert {item.key for item in items} == {str(i) for i in range(100)}


def test_clear():
    slm = filled(100)
    slm.clear()
    assert len(slm) == 0


def test_iter_cb():
    slm = filled(100)
    seen = []
    slm.iter_cb(lambda key, value: seen.append((key, value)))
    assert len(seen) == 100
    assert all(isinstance(v, User) and v.name == k for k, v in seen)


def test_items():
    items = filled(100).items()
    assert len(items) == 100
    assert items["42"] == User("42")


def test_keys():
    keys = filled(100).keys()
    assert sorted(keys, key=int) == [str(i) for i in range(100)]


def test_to_json():
    slm = ShardLockMap(shard_count=2)
    slm.set("a", 1)
    slm.set("b", 2)
    assert slm.to_json() == '{"a":1,"b":2}'


def test_to_json_unserialisable_value():
    slm = ShardLockMap()
    slm.set("u", User("x"))
    with pytest.raises(TypeError):
        slm.to_json()


def test_load_json():
    slm = ShardLockMap()
    slm.load_json(b'{"ccc":1,"ddd":2}')
    assert len(slm) == 2
    assert slm.get("ccc") == 1
    assert slm.get("ddd") == 2


def test_load_json_errors():
    slm = ShardLockMap()
    with pytest.raises(ValueError):
        slm.load_json("[1, 2]")
    with pytest.raises(json.JSONDecodeError):
        slm.load_json("{not json")
    assert len(slm) == 0


def test_json_round_trip():
    slm = ShardLockMap()
    slm.mset({"x": [1, 2], "y": {"z": None}, "w": "s"})
    other = ShardLockMap(shard_count=3)
    other.load_json(slm.to_json())
    assert other.items() == slm.items()


def test_keys_when_removing():
    slm = filled(100)
    threads = [threading.Thread(target=slm.remove, args=(str(n),)) for n in range(10)]
    for t in threads:
        t.start()
    keys = slm.keys()
    for t in threads:
        t.join()
    assert all(k != "" for k in keys)
    assert 90 <= len(keys) <= 100
    assert len(slm) == 90


def test_undrained_iter_buffered():
    slm = filled(100)
    it = slm.iter_buffered()
    counter = 0
    for item in it:
        assert item.value is not None
        counter += 1
        if counter == 42:
            break
    for i in range(100, 200):
        slm.set(str(i), User(str(i)))
    for item in it:
        assert item.value is not None
        counter += 1
    assert counter == 100
    assert sum(1 for _ in slm.iter_buffered()) == 200


def test_concurrent():
    slm = ShardLockMap()
    iterations = 1000
    results = []
    lock = threading.Lock()

    def worker(start, stop):
        for i in range(start, stop):
            slm.set(str(i), i)
            value = slm.get(str(i))
            with lock:
                results.append(value)

    threads = [
        threading.Thread(target=worker, args=(0, iterations // 2)),
        threading.Thread(target=worker, args=(iterations // 2, iterations)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(slm) == iterations
    assert sorted(results) == list(range(iterations))


@pytest.mark.parametrize("shards", [1, 16, 32, 256])
def test_multi_insert_different(shards):
    slm = ShardLockMap(shard_count=shards)

    def setter(key):
        for _ in range(10):
            slm.set(key, "value")

    threads = [threading.Thread(target=setter, args=(str(i),)) for i in range(200)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(slm) == 200
    assert all(slm.get(str(i)) == "value" for i in range(200))


def test_custom_hasher():
    class ConstantHash:
        def sum(self, key):
            return 7

    slm = ShardLockMap(hasher=ConstantHash(), shard_count=4)
    assert slm.shard_index("anything") == 3
    slm.mset({"a": 1, "b": 2})
    assert slm.items() == {"a": 1, "b": 2}


def test_shard_index_in_range():
    slm = ShardLockMap(shard_count=5)
    assert all(0 <= slm.shard_index(str(i)) < 5 for i in range(100))