"""
Queue feature - folder scanning, weighted sampling and the discovery queue.
"""
from .discovery_queue import DiscoveryQueue
from .engine import FolderQueueEngine
from .models import (
    BrowseEntry,
    EngineDiagnostics,
    FolderNode,
    MediaItem,
    PassReport,
    PassState,
    PriorityPattern,
    ScanBudget,
    ScanState,
)
from .scheduler import ScanScheduler
from .structure_cache import StructureCache, get_shared_structure_cache
from .weights import FolderWeightEngine

__all__ = [
    "FolderQueueEngine",
    "ScanScheduler",
    "DiscoveryQueue",
    "FolderWeightEngine",
    "StructureCache",
    "get_shared_structure_cache",
    "BrowseEntry",
    "MediaItem",
    "FolderNode",
    "ScanBudget",
    "PriorityPattern",
    "ScanState",
    "PassState",
    "PassReport",
    "EngineDiagnostics",
]
