"""
DiscoveryQueue - bounded buffer of ready-to-show items.

Owns dedupe, the exclusion ring (recently shown ids), navigation history and
the low-water refill signal. All state sits behind one coarse lock: admits are
cheap and correctness (no double admission) matters more than parallelism.
"""
from __future__ import annotations

import math
import random
import threading
from collections import OrderedDict
from dataclasses import dataclass

from ...shared import get_logger
from .models import MediaItem, ScanBudget

logger = get_logger(__name__)


@dataclass
class QueueCounters:
    admitted: int = 0
    duplicates: int = 0
    dropped_full: int = 0
    dropped_frozen: int = 0
    served: int = 0
    shuffles: int = 0
    cycle_resets: int = 0


class DiscoveryQueue:
    def __init__(self, budget: ScanBudget, rng: random.Random | None = None) -> None:
        self._lock = threading.Lock()
        self._rng = rng or random.Random()
        self._items: list[MediaItem] = []
        self._ids: set[str] = set()
        self._ring: OrderedDict[str, None] = OrderedDict()
        self._history: list[MediaItem] = []
        self._cursor = -1
        self._since_shuffle = 0
        self._frozen = False
        self.counters = QueueCounters()
        self._apply_budget(budget)

    def _apply_budget(self, budget: ScanBudget) -> None:
        self._capacity = int(budget.queue_capacity)
        self._low_water = budget.low_water_mark
        self._ring_capacity = budget.effective_exclusion_capacity
        self._history_size = int(budget.history_size)
        self._shuffle = not budget.is_sequential
        self._shuffle_min = int(budget.shuffle_min_batch)
        self._shuffle_max = int(budget.shuffle_max_batch)
        self._shuffle_fraction = float(budget.shuffle_fraction)
        self._keep_fraction = float(budget.recycle_keep_fraction)

    def reconfigure(self, budget: ScanBudget) -> None:
        """Apply a new budget in place; overflowing items are trimmed from the tail."""
        with self._lock:
            self._apply_budget(budget)
            while len(self._items) > self._capacity:
                dropped = self._items.pop()
                self._ids.discard(dropped.item_id)
            self._trim_ring_locked()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def is_full(self) -> bool:
        with self._lock:
            return len(self._items) >= self._capacity

    def needs_refill(self) -> bool:
        with self._lock:
            return len(self._items) < max(1, self._low_water)

    def contains(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._ids

    def is_excluded(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._ring

    @property
    def exclusion_size(self) -> int:
        with self._lock:
            return len(self._ring)

    @property
    def history_size(self) -> int:
        with self._lock:
            return len(self._history)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def snapshot(self) -> list[MediaItem]:
        with self._lock:
            return list(self._items)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def admit(self, item: MediaItem) -> bool:
        """Insert unless duplicate, excluded, frozen, or at capacity."""
        with self._lock:
            if self._frozen:
                self.counters.dropped_frozen += 1
                return False
            if item.item_id in self._ids or item.item_id in self._ring:
                self.counters.duplicates += 1
                return False
            if len(self._items) >= self._capacity:
                self.counters.dropped_full += 1
                return False
            self._items.append(item)
            self._ids.add(item.item_id)
            self.counters.admitted += 1
            if self._shuffle:
                self._since_shuffle += 1
                if self._since_shuffle >= self._shuffle_threshold_locked():
                    self._shuffle_locked()
            return True

    def _shuffle_threshold_locked(self) -> int:
        scaled = int(math.floor(len(self._items) * self._shuffle_fraction))
        return min(self._shuffle_max, max(self._shuffle_min, scaled))

    def _shuffle_locked(self) -> None:
        self._rng.shuffle(self._items)
        self._since_shuffle = 0
        self.counters.shuffles += 1

    def shuffle(self) -> None:
        """Shuffle now (end of a scan pass) so the unshuffled tail is mixed in."""
        with self._lock:
            if self._shuffle and self._items:
                self._shuffle_locked()

    # ------------------------------------------------------------------
    # Consumption / navigation
    # ------------------------------------------------------------------

    def next(self) -> MediaItem | None:
        with self._lock:
            # After stepping back, move forward through history before consuming.
            if 0 <= self._cursor < len(self._history) - 1:
                self._cursor += 1
                return self._history[self._cursor]
            if not self._items:
                return None
            item = self._items.pop(0)
            self._ids.discard(item.item_id)
            self._ring[item.item_id] = None
            self._ring.move_to_end(item.item_id)
            self._trim_ring_locked()
            self._history.append(item)
            if len(self._history) > self._history_size:
                del self._history[: len(self._history) - self._history_size]
            self._cursor = len(self._history) - 1
            self.counters.served += 1
            return item

    def previous(self) -> MediaItem | None:
        with self._lock:
            if self._cursor <= 0:
                return None
            self._cursor -= 1
            return self._history[self._cursor]

    def _trim_ring_locked(self) -> None:
        while len(self._ring) > self._ring_capacity:
            self._ring.popitem(last=False)

    # ------------------------------------------------------------------
    # Full-cycle reset
    # ------------------------------------------------------------------

    def should_reset_cycle(self, estimated_total: int | None, exhausted_without_admissions: bool) -> bool:
        with self._lock:
            if not self._ring:
                return False
            if estimated_total and len(self._ring) >= estimated_total:
                return True
            return bool(exhausted_without_admissions) and not self._items

    def reset_cycle(self) -> int:
        """
        Allow repeats: forget shown items except the most recent
        `recycle_keep_fraction`, so the cycle boundary never repeats immediately.
        """
        with self._lock:
            total = len(self._ring)
            if total == 0:
                return 0
            keep = int(total * self._keep_fraction)
            if keep >= total:
                keep = total - 1
            recent = list(self._ring.keys())[total - keep:] if keep > 0 else []
            self._ring = OrderedDict((k, None) for k in recent)
            self.counters.cycle_resets += 1
            released = total - len(self._ring)
        logger.info("Exclusion ring recycled: released %d of %d shown items", released, total)
        return released

    # ------------------------------------------------------------------
    # Pause / reset
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        self._frozen = True

    def thaw(self) -> None:
        self._frozen = False

    def clear(self, *, keep_exclusions: bool = False) -> None:
        with self._lock:
            self._items.clear()
            self._ids.clear()
            self._since_shuffle = 0
            if not keep_exclusions:
                self._ring.clear()
                self._history.clear()
                self._cursor = -1
