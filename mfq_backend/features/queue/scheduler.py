"""
ScanScheduler - walks the folder tree in bounded concurrency.

The scheduler is a steppable state machine: `step()` tops the in-flight pool up
to `max_concurrent_scans` browse calls, waits for the first completion and
processes it. `run_pass()` just loops `step()`. Nothing here is timer-driven;
the facade decides when a pass (or a continuation segment) runs.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from ...shared import (
    ErrorCode,
    MediaFilter,
    MediaKind,
    Result,
    classify_file,
    get_logger,
    log_structured,
    sanitize_error_message,
    timer,
)
from .discovery_queue import DiscoveryQueue
from .models import (
    BrowseEntry,
    FolderNode,
    MediaItem,
    PassReport,
    PassState,
    ScanBudget,
    ScanState,
)
from .ordering import sort_folders_sequential, sort_items_sequential
from .structure_cache import StructureCache
from .weights import FolderWeightEngine

logger = get_logger(__name__)


@dataclass
class ScanTotals:
    """Cumulative counters since the last full reset."""
    folders_scanned: int = 0
    folders_failed: int = 0
    folders_skipped: int = 0
    items_admitted: int = 0
    items_rejected: int = 0
    items_skipped: int = 0
    passes: int = 0

    def reset(self) -> None:
        self.folders_scanned = 0
        self.folders_failed = 0
        self.folders_skipped = 0
        self.items_admitted = 0
        self.items_rejected = 0
        self.items_skipped = 0
        self.passes = 0


class ScanScheduler:
    def __init__(
        self,
        browse_client: Any,
        queue: DiscoveryQueue,
        *,
        weights: FolderWeightEngine | None = None,
        cache: StructureCache | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._client = browse_client
        self._queue = queue
        self._weights = weights or FolderWeightEngine()
        self._cache = cache
        self._rng = rng or random.Random()

        self.registry: dict[str, FolderNode] = {}
        self.totals = ScanTotals()
        self._pending: deque[str] = deque()
        self._backlog: deque[MediaItem] = deque()
        self._inflight: dict[asyncio.Task, str] = {}

        self._root: str | None = None
        self._budget = ScanBudget()
        self._paused = False
        self._deadline = 0.0
        self._segment_start = 0.0
        self._segment_open = False

        self.pass_id = 0
        self.pass_estimated_total: int | None = None
        self.pass_admitted = 0
        self.pass_candidates = 0
        self.pass_complete = False
        self.root_error: str | None = None
        self.state = PassState.IDLE
        self.report = PassReport(pass_id=0, state=PassState.IDLE)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def root(self) -> str | None:
        return self._root

    @property
    def budget(self) -> ScanBudget:
        return self._budget

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def capped(self) -> bool:
        return self.pass_admitted >= int(self._budget.global_item_cap)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def has_pending_work(self) -> bool:
        return bool(self._pending or self._inflight or self._backlog)

    def node(self, folder_id: str) -> FolderNode | None:
        return self.registry.get(folder_id)

    def _concurrency(self) -> int:
        if self._budget.is_sequential:
            return 1
        return max(1, int(self._budget.max_concurrent_scans))

    # ------------------------------------------------------------------
    # Pass lifecycle
    # ------------------------------------------------------------------

    def begin_pass(self, root: str, budget: ScanBudget, *, full: bool = True) -> None:
        """
        Open a scan segment.

        A full pass re-seeds the root and snapshots `estimated_total`; a
        continuation keeps the pending work and the snapshot of its pass.
        """
        if self._root is not None and root != self._root:
            self.reset()
        self._root = root
        self._budget = budget

        if full or not self.has_pending_work():
            full = True
            self.pass_id += 1
            self.pass_estimated_total = budget.estimated_total_items
            self.pass_admitted = 0
            self.pass_candidates = 0
            self.pass_complete = False
            self.root_error = None
            self._pending.clear()
            self._backlog.clear()
            for node in self.registry.values():
                node.state = ScanState.UNVISITED
                node.attempts = 0
            root_node = self.registry.get(root)
            if root_node is None:
                root_node = FolderNode(folder_id=root, parent_id=None, depth=0)
                self.registry[root] = root_node
            root_node.state = ScanState.QUEUED
            root_node.pass_id = self.pass_id
            self._pending.append(root)
            self.totals.passes += 1
            if self._cache is not None:
                pruned = self._cache.prune_expired(budget.structure_cache_ttl_seconds)
                if pruned:
                    logger.debug("Dropped %d expired folder listings", pruned)

        self._segment_start = time.monotonic()
        self._deadline = self._segment_start + float(budget.scan_timeout_seconds)
        self._segment_open = True
        self.state = PassState.RUNNING
        self.report = PassReport(pass_id=self.pass_id, state=PassState.RUNNING)
        log_structured(
            logger,
            logging.INFO,
            "Scan pass started" if full else "Scan pass resumed",
            pass_id=self.pass_id,
            root=root,
            estimated_total=self.pass_estimated_total,
            pending=len(self._pending),
            mode=budget.order_mode,
        )

    async def run_pass(self) -> PassReport:
        # A segment stops launching at the deadline; in-flight calls may add one browse timeout.
        slow_after = float(self._budget.scan_timeout_seconds) + float(self._budget.browse_timeout_seconds)
        with timer(f"Scan pass {self.pass_id} segment", logger, slow_after=slow_after):
            while await self.step():
                pass
        return self.report

    async def step(self) -> bool:
        """
        Advance the current segment by one browse completion.

        Returns False once the segment has stopped (complete, paused, timed
        out, capped, queue full or root unavailable).
        """
        if not self._segment_open:
            return False
        self._drain_backlog()
        self._launch()
        if not self._inflight:
            self._finish_segment()
            return False

        done, _ = await asyncio.wait(set(self._inflight), return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            folder_id = self._inflight.pop(task, None)
            if folder_id is None or task.cancelled():
                continue
            node = self.registry.get(folder_id)
            if node is None:
                continue
            if self._paused:
                # Not processed; picked up first on resume.
                node.state = ScanState.QUEUED
                node.attempts = max(0, node.attempts - 1)
                self._pending.appendleft(folder_id)
                continue
            self._process(node, task.result())
        return True

    def _stop_reason(self) -> PassState | None:
        if self._paused:
            return PassState.PAUSED
        if self.root_error is not None:
            return PassState.ROOT_UNAVAILABLE
        if self.capped:
            return PassState.CAPPED
        if time.monotonic() >= self._deadline:
            return PassState.TIMED_OUT
        if self._backlog or self._queue.is_full():
            return PassState.QUEUE_FULL
        return None

    def _launch(self) -> None:
        if self._stop_reason() is not None:
            return
        limit = self._concurrency()
        while self._pending and len(self._inflight) < limit:
            folder_id = self._pending.popleft()
            node = self.registry.get(folder_id)
            if node is None or node.state.is_terminal or node.state == ScanState.SCANNING:
                continue
            node.state = ScanState.SCANNING
            node.attempts += 1
            task = asyncio.ensure_future(self._browse(folder_id))
            self._inflight[task] = folder_id

    def _finish_segment(self) -> None:
        reason = self._stop_reason()
        walked = not self._pending and not self._backlog
        if reason is None or (walked and reason != PassState.ROOT_UNAVAILABLE):
            reason = PassState.COMPLETE
        if reason == PassState.COMPLETE:
            self.pass_complete = True
        self.state = reason
        self._segment_open = False
        self.report.state = reason
        self.report.exhausted = self.pass_complete
        self.report.duration_seconds = time.monotonic() - self._segment_start
        self.report.error = self.root_error
        log_structured(
            logger,
            logging.WARNING if reason == PassState.ROOT_UNAVAILABLE else logging.INFO,
            "Scan pass segment finished",
            **self.report.to_dict(),
            pending=len(self._pending),
            queue_depth=len(self._queue),
        )

    # ------------------------------------------------------------------
    # Browse
    # ------------------------------------------------------------------

    async def _browse(self, folder_id: str) -> Result[list[BrowseEntry]]:
        if self._cache is not None:
            cached = self._cache.get(folder_id, self._budget.structure_cache_ttl_seconds)
            if cached is not None:
                return Result.Ok(cached, cached=True)

        timeout = float(self._budget.browse_timeout_seconds)
        try:
            res = await asyncio.wait_for(self._client.browse(folder_id), timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError):
            return Result.Err(ErrorCode.TIMEOUT, f"Browse timed out after {timeout:g}s")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return Result.Err(ErrorCode.UNREACHABLE, sanitize_error_message(exc, "Browse failed"))

        if not isinstance(res, Result):
            res = Result.Ok(list(res or []))
        if res.ok and self._cache is not None:
            self._cache.put(folder_id, list(res.data or []))
        return res

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _process(self, node: FolderNode, result: Result[list[BrowseEntry]]) -> None:
        if not result.ok:
            self._handle_failure(node, result)
            return

        entries = list(result.data or [])
        folders = [e for e in entries if e.is_expandable]
        leaves = [e for e in entries if not e.is_expandable]
        node.observe(len(leaves), len(folders))
        node.last_error = None

        if node.folder_id == self._root and self._budget.root_excluded_folders:
            excluded = set(self._budget.root_excluded_folders)
            folders = [f for f in folders if f.name not in excluded]

        self._enqueue_children(node, folders)

        if len(leaves) > int(self._budget.max_items_per_folder):
            node.state = ScanState.SKIPPED
            self.report.folders_skipped += 1
            self.report.items_skipped += len(leaves)
            self.totals.folders_skipped += 1
            self.totals.items_skipped += len(leaves)
            log_structured(
                logger,
                logging.WARNING,
                "Folder skipped: too many items",
                folder=node.folder_id,
                items=len(leaves),
                max_items_per_folder=self._budget.max_items_per_folder,
            )
            return

        self._admit_leaves(node, leaves)
        node.state = ScanState.DONE
        self.report.folders_scanned += 1
        self.totals.folders_scanned += 1

    def _handle_failure(self, node: FolderNode, result: Result[Any]) -> None:
        node.last_error = result.error
        is_root = node.folder_id == self._root
        if node.attempts <= int(self._budget.browse_retry_limit):
            node.state = ScanState.QUEUED
            self._pending.append(node.folder_id)
            logger.warning(
                "Browse failed for %s (%s: %s), retrying once",
                node.folder_id,
                result.code,
                result.error,
            )
            return

        node.state = ScanState.FAILED
        self.report.folders_failed += 1
        self.totals.folders_failed += 1
        if is_root:
            self.root_error = result.error or "Root folder could not be browsed"
        log_structured(
            logger,
            logging.ERROR if is_root else logging.WARNING,
            "Root folder unavailable" if is_root else "Folder browse failed",
            folder=node.folder_id,
            code=result.code,
            error=result.error,
            attempts=node.attempts,
        )

    def _enqueue_children(self, parent: FolderNode, folders: list[BrowseEntry]) -> None:
        depth = parent.depth + 1
        max_depth = self._budget.max_depth
        if max_depth is not None and depth > max_depth:
            return

        fresh: list[BrowseEntry] = []
        for entry in folders:
            existing = self.registry.get(entry.entry_id)
            if existing is not None and existing.pass_id == self.pass_id and existing.state != ScanState.UNVISITED:
                continue
            fresh.append(entry)
        if not fresh:
            return

        if self._budget.is_sequential:
            fresh = sort_folders_sequential(fresh, self._budget.order_direction)
        else:
            self._rng.shuffle(fresh)

        for entry in fresh:
            node = self.registry.get(entry.entry_id)
            if node is None:
                node = FolderNode(folder_id=entry.entry_id, parent_id=parent.folder_id, depth=depth)
                self.registry[entry.entry_id] = node
            node.parent_id = parent.folder_id
            node.depth = depth
            node.state = ScanState.QUEUED
            node.pass_id = self.pass_id
            node.attempts = 0

        ids = [entry.entry_id for entry in fresh]
        if self._budget.is_sequential:
            # Depth-first: the first sorted child is browsed next.
            self._pending.extendleft(reversed(ids))
        else:
            self._pending.extend(ids)

    def _classify(self, entry: BrowseEntry) -> MediaKind:
        kind = classify_file(entry.display_name or entry.entry_id)
        if kind == "unknown" and entry.display_name:
            kind = classify_file(entry.entry_id)
        if kind == "unknown" and entry.media_class in ("image", "video"):
            kind = entry.media_class  # type: ignore[assignment]
        return kind

    def _admit_leaves(self, node: FolderNode, leaves: list[BrowseEntry]) -> None:
        budget = self._budget
        wanted = budget.media_kind
        sequential = budget.is_sequential
        if sequential:
            probability = 1.0
            leaves = sort_items_sequential(leaves, budget.order_direction)
        else:
            probability = self._weights.admission_probability(node, budget, self.pass_estimated_total)
        cap = int(budget.global_item_cap)

        for entry in leaves:
            kind = self._classify(entry)
            if kind == "unknown" or (wanted != MediaFilter.ALL.value and kind != wanted):
                self.report.items_skipped += 1
                self.totals.items_skipped += 1
                continue
            if self._queue.is_excluded(entry.entry_id) or self._queue.contains(entry.entry_id):
                continue
            self.pass_candidates += 1
            if self.pass_admitted >= cap:
                continue
            if probability < 1.0 and self._rng.random() >= probability:
                self.report.items_rejected += 1
                self.totals.items_rejected += 1
                logger.debug("Rejected %s (p=%.4f)", entry.entry_id, probability)
                continue
            item = MediaItem(
                item_id=entry.entry_id,
                folder_id=node.folder_id,
                display_name=entry.name,
                kind=kind,
            )
            if self._backlog or not self._queue.admit(item):
                if self._queue.contains(item.item_id) or self._queue.is_excluded(item.item_id):
                    continue
                # Queue full: hold the item until the consumer drains.
                self._backlog.append(item)
            self._count_admitted()

    def _count_admitted(self) -> None:
        self.pass_admitted += 1
        self.report.items_admitted += 1
        self.totals.items_admitted += 1

    def _drain_backlog(self) -> None:
        while self._backlog and not self._queue.frozen:
            if not self._queue.admit(self._backlog[0]):
                if self._queue.is_full():
                    return
            self._backlog.popleft()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_paused(self, paused: bool) -> None:
        self._paused = bool(paused)

    def cancel_inflight(self) -> None:
        for task in list(self._inflight):
            if not task.done():
                task.cancel()
        for folder_id in self._inflight.values():
            node = self.registry.get(folder_id)
            if node is not None and node.state == ScanState.SCANNING:
                node.state = ScanState.UNVISITED
        self._inflight.clear()

    def reset_traversal(self) -> None:
        """Forget the walk position; observed counts in the registry are kept."""
        self.cancel_inflight()
        self._pending.clear()
        self._backlog.clear()
        for node in self.registry.values():
            node.state = ScanState.UNVISITED
            node.attempts = 0
        self.pass_complete = False
        self.pass_admitted = 0
        self.pass_candidates = 0
        self.root_error = None
        self._segment_open = False
        self.state = PassState.IDLE

    def reset(self) -> None:
        """Full reset (root change): registry, counters and walk position."""
        self.reset_traversal()
        self.registry.clear()
        self.totals.reset()
        self.pass_id = 0
        self.pass_estimated_total = None
        self.report = PassReport(pass_id=0, state=PassState.IDLE)
        self._root = None
