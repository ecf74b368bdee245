"""
Shared types for the folder queue engine.

`ScanBudget` is the single validated configuration snapshot of one engine
instance. Raw slideshow configuration (snake_case or camelCase keys) goes
through `ScanBudget.from_mapping`, which returns a Result instead of raising.
"""
from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any

from ...config import (
    DEFAULT_BROWSE_RETRY_LIMIT,
    DEFAULT_BROWSE_TIMEOUT_SECONDS,
    DEFAULT_GLOBAL_ITEM_CAP,
    DEFAULT_HISTORY_SIZE,
    DEFAULT_LOW_WATER_MARK_FRACTION,
    DEFAULT_MAX_CONCURRENT_SCANS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_ITEMS_PER_FOLDER,
    DEFAULT_NEXT_ITEM_WAIT_SECONDS,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_RECYCLE_KEEP_FRACTION,
    DEFAULT_SCAN_TIMEOUT_SECONDS,
    ROOT_EXCLUDED_FOLDERS,
    SHUFFLE_FRACTION,
    SHUFFLE_MAX_BATCH,
    SHUFFLE_MIN_BATCH,
    STRUCTURE_CACHE_TTL_SECONDS,
)
from ...shared import ErrorCode, MediaFilter, MediaKind, OrderMode, Result
from ...utils import parse_float, parse_int

DEFAULT_PRIORITY_MULTIPLIER = 3.0


class ScanState(str, Enum):
    """Per-folder state within one scan pass."""
    UNVISITED = "unvisited"
    QUEUED = "queued"
    SCANNING = "scanning"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.DONE, ScanState.SKIPPED, ScanState.FAILED)


class PassState(str, Enum):
    """Why the scheduler stopped (or is still) issuing browse calls."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    PAUSED = "paused"
    TIMED_OUT = "timed_out"
    CAPPED = "capped"
    QUEUE_FULL = "queue_full"
    ROOT_UNAVAILABLE = "root_unavailable"


@dataclass(frozen=True)
class BrowseEntry:
    """One child returned by the browse collaborator."""
    entry_id: str
    display_name: str = ""
    is_expandable: bool = False
    media_class: str | None = None

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        return self.entry_id.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class MediaItem:
    item_id: str
    folder_id: str
    display_name: str
    kind: MediaKind
    discovered_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FolderNode:
    """
    Registry record for a discovered folder.

    Owned by the scheduler's registry and mutated only by the task that
    currently holds it. `parent_id` is a plain identifier, not an owning link.
    """
    folder_id: str
    parent_id: str | None = None
    depth: int = 0
    observed_item_count: int = 0
    child_folder_count: int = 0
    state: ScanState = ScanState.UNVISITED
    last_scanned: float | None = None
    attempts: int = 0
    pass_id: int = 0
    last_error: str | None = None

    def observe(self, item_count: int, folder_count: int) -> None:
        # Counts are monotonic for the life of the registry.
        self.observed_item_count = max(self.observed_item_count, int(item_count))
        self.child_folder_count = max(self.child_folder_count, int(folder_count))
        self.last_scanned = time.time()


@dataclass(frozen=True)
class PriorityPattern:
    path: str
    weight_multiplier: float = DEFAULT_PRIORITY_MULTIPLIER

    @classmethod
    def from_value(cls, value: Any) -> "PriorityPattern | None":
        if isinstance(value, PriorityPattern):
            return value
        if isinstance(value, str):
            return cls(path=value) if value else None
        if isinstance(value, Mapping):
            path = value.get("path") or value.get("path_substring") or value.get("pathSubstring")
            if not path:
                return None
            mult = parse_float(
                value.get("weight_multiplier", value.get("weightMultiplier")),
                DEFAULT_PRIORITY_MULTIPLIER,
            )
            return cls(path=str(path), weight_multiplier=float(mult or DEFAULT_PRIORITY_MULTIPLIER))
        return None


# camelCase names used by slideshow configuration -> ScanBudget field names
_CAMEL_ALIASES: dict[str, str] = {
    "maxDepth": "max_depth",
    "scanDepth": "max_depth",
    "scan_depth": "max_depth",
    "globalItemCap": "global_item_cap",
    "maxItemsPerFolder": "max_items_per_folder",
    "scanTimeoutSeconds": "scan_timeout_seconds",
    "maxConcurrentScans": "max_concurrent_scans",
    "estimatedTotalItems": "estimated_total_items",
    "estimated_total_photos": "estimated_total_items",
    "priorityPatterns": "priority_patterns",
    "priority_folder_patterns": "priority_patterns",
    "priority_folders": "priority_patterns",
    "queueCapacity": "queue_capacity",
    "slideshow_window": "queue_capacity",
    "lowWaterMarkFraction": "low_water_mark_fraction",
    "sampleTarget": "sample_target",
    "mediaKind": "media_kind",
    "media_type": "media_kind",
    "orderMode": "order_mode",
    "folder_mode": "order_mode",
    "orderDirection": "order_direction",
    "rootExcludedFolders": "root_excluded_folders",
    "browseTimeoutSeconds": "browse_timeout_seconds",
    "exclusionCapacity": "exclusion_capacity",
    "historySize": "history_size",
    "nextItemWaitSeconds": "next_item_wait_seconds",
    "structureCacheTtlSeconds": "structure_cache_ttl_seconds",
}


@dataclass(frozen=True)
class ScanBudget:
    max_depth: int | None = DEFAULT_MAX_DEPTH if DEFAULT_MAX_DEPTH >= 0 else None
    global_item_cap: int = DEFAULT_GLOBAL_ITEM_CAP
    max_items_per_folder: int = DEFAULT_MAX_ITEMS_PER_FOLDER
    scan_timeout_seconds: float = DEFAULT_SCAN_TIMEOUT_SECONDS
    max_concurrent_scans: int = DEFAULT_MAX_CONCURRENT_SCANS
    estimated_total_items: int | None = None
    priority_patterns: tuple[PriorityPattern, ...] = ()
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    low_water_mark_fraction: float = DEFAULT_LOW_WATER_MARK_FRACTION
    sample_target: int | None = None
    media_kind: str = MediaFilter.ALL.value
    order_mode: str = OrderMode.RANDOM.value
    order_direction: str = "desc"
    root_excluded_folders: tuple[str, ...] = ROOT_EXCLUDED_FOLDERS
    browse_timeout_seconds: float = DEFAULT_BROWSE_TIMEOUT_SECONDS
    browse_retry_limit: int = DEFAULT_BROWSE_RETRY_LIMIT
    shuffle_min_batch: int = SHUFFLE_MIN_BATCH
    shuffle_max_batch: int = SHUFFLE_MAX_BATCH
    shuffle_fraction: float = SHUFFLE_FRACTION
    exclusion_capacity: int | None = None
    history_size: int = DEFAULT_HISTORY_SIZE
    recycle_keep_fraction: float = DEFAULT_RECYCLE_KEEP_FRACTION
    next_item_wait_seconds: float = DEFAULT_NEXT_ITEM_WAIT_SECONDS
    structure_cache_ttl_seconds: float = STRUCTURE_CACHE_TTL_SECONDS

    @property
    def effective_sample_target(self) -> int:
        return int(self.sample_target or self.queue_capacity)

    @property
    def effective_exclusion_capacity(self) -> int:
        return int(self.exclusion_capacity or self.queue_capacity)

    @property
    def low_water_mark(self) -> int:
        return int(self.queue_capacity * self.low_water_mark_fraction)

    @property
    def is_sequential(self) -> bool:
        return self.order_mode == OrderMode.SEQUENTIAL.value

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority_patterns"] = [asdict(p) for p in self.priority_patterns]
        data["root_excluded_folders"] = list(self.root_excluded_folders)
        return data

    def validate(self) -> Result["ScanBudget"]:
        problems: list[str] = []
        if self.max_depth is not None and self.max_depth < 0:
            problems.append("max_depth must be >= 0 or None")
        for name in ("global_item_cap", "max_items_per_folder", "max_concurrent_scans", "queue_capacity",
                     "shuffle_min_batch", "shuffle_max_batch", "history_size"):
            if int(getattr(self, name)) < 1:
                problems.append(f"{name} must be >= 1")
        for name in ("scan_timeout_seconds", "browse_timeout_seconds"):
            if float(getattr(self, name)) <= 0:
                problems.append(f"{name} must be > 0")
        if self.next_item_wait_seconds < 0:
            problems.append("next_item_wait_seconds must be >= 0")
        if self.structure_cache_ttl_seconds <= 0:
            problems.append("structure_cache_ttl_seconds must be > 0")
        if self.estimated_total_items is not None and self.estimated_total_items < 0:
            problems.append("estimated_total_items must be >= 0")
        if self.sample_target is not None and self.sample_target < 1:
            problems.append("sample_target must be >= 1")
        if self.exclusion_capacity is not None and self.exclusion_capacity < 1:
            problems.append("exclusion_capacity must be >= 1")
        if not 0.0 <= self.low_water_mark_fraction <= 1.0:
            problems.append("low_water_mark_fraction must be within [0, 1]")
        if not 0.0 <= self.shuffle_fraction <= 1.0:
            problems.append("shuffle_fraction must be within [0, 1]")
        if not 0.0 <= self.recycle_keep_fraction < 1.0:
            problems.append("recycle_keep_fraction must be within [0, 1)")
        if self.browse_retry_limit not in (0, 1):
            problems.append("browse_retry_limit must be 0 or 1")
        if self.media_kind not in {m.value for m in MediaFilter}:
            problems.append(f"media_kind must be one of {[m.value for m in MediaFilter]}")
        if self.order_mode not in {m.value for m in OrderMode}:
            problems.append(f"order_mode must be one of {[m.value for m in OrderMode]}")
        if self.order_direction not in ("asc", "desc"):
            problems.append("order_direction must be 'asc' or 'desc'")
        for pattern in self.priority_patterns:
            if pattern.weight_multiplier <= 0:
                problems.append(f"priority pattern {pattern.path!r} needs a positive weight_multiplier")
        if problems:
            return Result.Err(ErrorCode.INVALID_INPUT, "; ".join(problems), problems=problems)
        return Result.Ok(self)

    def with_changes(self, **changes: Any) -> "ScanBudget":
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> Result["ScanBudget"]:
        """
        Build and validate a budget from externally loaded configuration.

        Unknown keys are ignored; numeric strings are coerced.
        """
        if raw is None:
            return cls().validate()
        if not isinstance(raw, Mapping):
            return Result.Err(ErrorCode.INVALID_INPUT, "Budget configuration must be a mapping")

        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in raw.items():
            name = _CAMEL_ALIASES.get(str(key), str(key))
            if name in known:
                values[name] = value

        kwargs: dict[str, Any] = {}
        try:
            for name, value in values.items():
                kwargs[name] = _coerce_field(name, value)
        except (TypeError, ValueError) as exc:
            return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid budget configuration: {exc}")
        return cls(**kwargs).validate()


_INT_FIELDS = {
    "global_item_cap", "max_items_per_folder", "max_concurrent_scans", "queue_capacity",
    "browse_retry_limit", "shuffle_min_batch", "shuffle_max_batch", "history_size",
}
_OPTIONAL_INT_FIELDS = {"max_depth", "estimated_total_items", "sample_target", "exclusion_capacity"}
_FLOAT_FIELDS = {
    "scan_timeout_seconds", "low_water_mark_fraction", "browse_timeout_seconds", "shuffle_fraction",
    "recycle_keep_fraction", "next_item_wait_seconds", "structure_cache_ttl_seconds",
}


def _coerce_field(name: str, value: Any) -> Any:
    if name in _INT_FIELDS:
        parsed = parse_int(value)
        if parsed is None:
            raise ValueError(f"{name}={value!r} is not an integer")
        return parsed
    if name in _OPTIONAL_INT_FIELDS:
        if value is None or value == "":
            return None
        parsed = parse_int(value)
        if parsed is None:
            raise ValueError(f"{name}={value!r} is not an integer")
        if name == "max_depth" and parsed < 0:
            return None
        if name == "estimated_total_items" and parsed == 0:
            return None
        return parsed
    if name in _FLOAT_FIELDS:
        parsed_f = parse_float(value)
        if parsed_f is None:
            raise ValueError(f"{name}={value!r} is not a number")
        return parsed_f
    if name == "priority_patterns":
        if isinstance(value, (str, Mapping)):
            value = [value]
        patterns = [PriorityPattern.from_value(v) for v in (value or [])]
        return tuple(p for p in patterns if p is not None)
    if name == "root_excluded_folders":
        if isinstance(value, str):
            value = [v for v in value.split(",")]
        return tuple(str(v).strip() for v in (value or []) if str(v).strip())
    if name in ("media_kind", "order_mode", "order_direction"):
        return str(value or "").strip().lower()
    return value


@dataclass
class PassReport:
    """Outcome of one scan pass segment (a pass may span several segments)."""
    pass_id: int
    state: PassState
    folders_scanned: int = 0
    folders_failed: int = 0
    folders_skipped: int = 0
    items_admitted: int = 0
    items_rejected: int = 0
    items_skipped: int = 0
    duration_seconds: float = 0.0
    exhausted: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass
class EngineDiagnostics:
    folders_scanned: int
    items_admitted: int
    items_skipped: int
    queue_depth: int
    estimated_total: int | None
    folders_failed: int = 0
    folders_skipped: int = 0
    folders_known: int = 0
    passes: int = 0
    scanning: bool = False
    paused: bool = False
    exclusion_size: int = 0
    history_size: int = 0
    pass_state: str = PassState.IDLE.value
    root: str | None = None
    last_error: str | None = None
    expected_shares: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
