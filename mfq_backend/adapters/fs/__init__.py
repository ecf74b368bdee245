"""
Filesystem helpers.
"""
from .cache_watcher import StructureCacheWatcher

__all__ = ["StructureCacheWatcher"]
