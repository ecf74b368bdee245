import time

from mfq_backend.features.queue.models import BrowseEntry
from mfq_backend.features.queue.structure_cache import StructureCache, get_shared_structure_cache


def _entries(*names):
    return [BrowseEntry(entry_id=f"root/{n}", display_name=n) for n in names]


def test_put_get_roundtrip_returns_copy():
    cache = StructureCache(ttl_seconds=60)
    cache.put("root", _entries("a.jpg"))
    got = cache.get("root")
    assert [e.name for e in got] == ["a.jpg"]
    got.append(BrowseEntry(entry_id="root/x.jpg"))
    assert len(cache.get("root")) == 1


def test_expired_entries_are_dropped(monkeypatch):
    cache = StructureCache(ttl_seconds=10)
    cache.put("root", _entries("a.jpg"))
    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 11)
    assert cache.get("root") is None
    assert len(cache) == 0


def test_explicit_ttl_override(monkeypatch):
    cache = StructureCache(ttl_seconds=60)
    cache.put("root", _entries("a.jpg"))
    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 5)
    assert cache.get("root") is not None
    assert cache.get("root", ttl_seconds=2) is None


def test_lru_eviction():
    cache = StructureCache(ttl_seconds=60, max_folders=2)
    cache.put("a", [])
    cache.put("b", [])
    cache.get("a")
    cache.put("c", [])
    assert cache.get("b") is None
    assert cache.get("a") == []
    assert cache.get("c") == []


def test_invalidate_prefix_drops_subtree_only():
    cache = StructureCache(ttl_seconds=60)
    for key in ("/media/photos", "/media/photos/2024", "/media/photos2", "/media/other"):
        cache.put(key, [])
    assert cache.invalidate_prefix("/media/photos/") == 2
    assert cache.get("/media/photos2") == []
    assert cache.get("/media/other") == []
    assert cache.invalidate_prefix("") == 0


def test_prune_expired(monkeypatch):
    cache = StructureCache(ttl_seconds=10)
    cache.put("old", [])
    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 20)
    cache.put("new", [])
    assert cache.prune_expired() == 1
    assert cache.get("new") == []


def test_full_cache_drops_expired_before_evicting_live(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(time, "time", lambda: clock[0])
    cache = StructureCache(ttl_seconds=10, max_folders=2)
    cache.put("stale", [])
    clock[0] += 8
    cache.put("live", [])
    assert cache.get("stale") == []  # most recently used, still fresh

    clock[0] += 4
    cache.put("new", [])

    assert len(cache) == 2
    assert cache.get("live") == []
    assert cache.get("new") == []


def test_prune_expired_with_explicit_ttl(monkeypatch):
    cache = StructureCache(ttl_seconds=3600)
    cache.put("a", [])
    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 30)
    assert cache.prune_expired() == 0
    assert cache.prune_expired(ttl_seconds=10) == 1
    assert len(cache) == 0


def test_shared_cache_is_a_singleton():
    assert get_shared_structure_cache() is get_shared_structure_cache()
