"""
Filesystem event watcher that keeps the structure cache honest for local roots.

Any event inside a directory drops that directory's cached listing (and, for
directory events, the moved/deleted subtree). Must never raise to callers.
"""
from __future__ import annotations

import os
import threading
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ...features.queue.structure_cache import StructureCache
from ...shared import get_logger

logger = get_logger(__name__)


def _normalize_watch_path(path: str) -> str | None:
    try:
        if not path:
            return None
        resolved = Path(path).resolve()
        if not resolved.is_dir():
            return None
        return str(resolved)
    except Exception:
        return None


class _InvalidateHandler(FileSystemEventHandler):
    def __init__(self, watcher: "StructureCacheWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            if event.event_type in ("opened", "closed", "closed_no_write"):
                return
            self._watcher.invalidate_for_path(str(event.src_path), is_directory=bool(event.is_directory))
            dest = getattr(event, "dest_path", "")
            if dest:
                self._watcher.invalidate_for_path(str(dest), is_directory=bool(event.is_directory))
        except Exception:
            return


class StructureCacheWatcher:
    def __init__(self, cache: StructureCache):
        self._cache = cache
        self._lock = threading.Lock()
        self._observer = None
        self._watched: dict[str, object] = {}
        self.events = 0

    @property
    def watched(self) -> list[str]:
        with self._lock:
            return list(self._watched)

    def invalidate_for_path(self, path: str, *, is_directory: bool = False) -> int:
        """Drop the cached listing of the directory containing `path`."""
        with self._lock:
            self.events += 1
        dropped = 0
        parent = os.path.dirname(path)
        for candidate in {parent, str(Path(parent))}:
            if self._cache.invalidate(candidate):
                dropped += 1
        if is_directory:
            dropped += self._cache.invalidate_prefix(path)
        return dropped

    def watch(self, path: str) -> bool:
        """
        Watch `path` recursively. Returns False (and logs at debug) when the
        path is not a local directory or the observer cannot be started.
        """
        key = _normalize_watch_path(path)
        if not key:
            return False
        with self._lock:
            if key in self._watched:
                return True
            if self._observer is None:
                obs = Observer()
                obs.daemon = True
                try:
                    obs.start()
                except Exception as exc:
                    logger.debug("Failed to start watchdog observer: %s", exc)
                    return False
                self._observer = obs
            try:
                watch = self._observer.schedule(_InvalidateHandler(self), key, recursive=True)
            except Exception as exc:
                logger.debug("Failed to watch path %s: %s", key, exc)
                return False
            self._watched[key] = watch
        logger.debug("Watching %s for structure changes", key)
        return True

    def unwatch(self, path: str) -> None:
        key = _normalize_watch_path(path) or path
        with self._lock:
            watch = self._watched.pop(key, None)
            if watch is None or self._observer is None:
                return
            try:
                self._observer.unschedule(watch)
            except Exception as exc:
                logger.debug("Failed to unwatch %s: %s", key, exc)

    def stop(self) -> None:
        """Stop the observer. Safe to call multiple times."""
        with self._lock:
            obs = self._observer
            self._observer = None
            self._watched.clear()
        if obs is None:
            return
        try:
            obs.stop()
            obs.join(timeout=2.0)
        except Exception as exc:
            logger.debug("Watchdog observer stop failed: %s", exc)
