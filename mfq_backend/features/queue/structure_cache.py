"""TTL cache of folder listings so quick reconnects do not re-walk unchanged trees."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict

from ...config import STRUCTURE_CACHE_MAX_FOLDERS, STRUCTURE_CACHE_TTL_SECONDS
from .models import BrowseEntry


class StructureCache:
    def __init__(self, ttl_seconds: float = STRUCTURE_CACHE_TTL_SECONDS, max_folders: int = STRUCTURE_CACHE_MAX_FOLDERS):
        self._ttl = max(1.0, float(ttl_seconds))
        self._max = max(1, int(max_folders))
        self._lock = threading.Lock()
        self._store: OrderedDict[str, tuple[float, tuple[BrowseEntry, ...]]] = OrderedDict()
        self._next_prune = 0.0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, folder_id: str, ttl_seconds: float | None = None) -> list[BrowseEntry] | None:
        ttl = self._ttl if ttl_seconds is None else max(0.0, float(ttl_seconds))
        with self._lock:
            item = self._store.get(folder_id)
            if not item:
                return None
            ts, entries = item
            if (time.time() - ts) > ttl:
                self._store.pop(folder_id, None)
                return None
            self._store.move_to_end(folder_id)
            return list(entries)

    def put(self, folder_id: str, entries: list[BrowseEntry]) -> None:
        """
        Store a listing. When full, expired listings are dropped before live
        ones are evicted least-recently-used first.
        """
        now = time.time()
        with self._lock:
            self._store[folder_id] = (now, tuple(entries or ()))
            self._store.move_to_end(folder_id)
            if len(self._store) > self._max and now >= self._next_prune:
                self._prune_locked(now)
            while len(self._store) > self._max:
                self._store.popitem(last=False)

    def invalidate(self, folder_id: str) -> bool:
        with self._lock:
            return self._store.pop(folder_id, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop `prefix` and every cached folder below it."""
        if not prefix:
            return 0
        base = prefix.rstrip("/\\")
        with self._lock:
            doomed = [
                k for k in self._store
                if k == prefix or k == base or k.startswith(base + "/") or k.startswith(base + "\\")
            ]
            for k in doomed:
                self._store.pop(k, None)
        return len(doomed)

    def _prune_locked(self, now: float, ttl: float | None = None) -> int:
        ttl = self._ttl if ttl is None else ttl
        expired = [k for k, (ts, _) in self._store.items() if (now - ts) > ttl]
        for k in expired:
            self._store.pop(k, None)
        # Full sweeps at most twice per TTL; in between, overflow is plain LRU.
        self._next_prune = now + self._ttl / 2.0
        return len(expired)

    def prune_expired(self, ttl_seconds: float | None = None) -> int:
        ttl = None if ttl_seconds is None else max(0.0, float(ttl_seconds))
        with self._lock:
            return self._prune_locked(time.time(), ttl)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


_SHARED_LOCK = threading.Lock()
_SHARED_CACHE: StructureCache | None = None


def get_shared_structure_cache() -> StructureCache:
    """Process-wide cache; outlives engine instances so reconnects start warm."""
    global _SHARED_CACHE
    with _SHARED_LOCK:
        if _SHARED_CACHE is None:
            _SHARED_CACHE = StructureCache()
        return _SHARED_CACHE


def _reset_shared_structure_cache_for_tests() -> None:
    global _SHARED_CACHE
    with _SHARED_LOCK:
        _SHARED_CACHE = None
