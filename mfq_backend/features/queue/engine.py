"""
FolderQueueEngine - the public facade consumed by the slideshow.

One instance per slideshow (no module-level scan state). Every public method
returns a Result; callers never see a raw exception.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from ...shared import ErrorCode, Result, engine_id_var, get_logger, log_structured, sanitize_error_message
from .discovery_queue import DiscoveryQueue
from .models import EngineDiagnostics, MediaItem, ScanBudget
from .scheduler import ScanScheduler
from .structure_cache import StructureCache
from .weights import FolderWeightEngine

logger = get_logger(__name__)

_POLL_INTERVAL_SECONDS = 0.05
_RETRY_AFTER_SECONDS = 1
_DIAGNOSTIC_SHARES_LIMIT = 20


class FolderQueueEngine:
    def __init__(
        self,
        browse_client: Any,
        *,
        budget: ScanBudget | None = None,
        cache: StructureCache | None = None,
        watcher: Any = None,
        rng: random.Random | None = None,
        engine_id: str | None = None,
    ) -> None:
        self.engine_id = engine_id or uuid4().hex[:8]
        self._client = browse_client
        self._budget = budget or ScanBudget()
        self._cache = cache
        self._watcher = watcher
        self._rng = rng or random.Random()
        self._weights = FolderWeightEngine()
        self._queue = DiscoveryQueue(self._budget, rng=self._rng)
        self._scheduler = ScanScheduler(
            browse_client,
            self._queue,
            weights=self._weights,
            cache=cache,
            rng=self._rng,
        )
        self._root: str | None = None
        self._scan_task: asyncio.Task | None = None
        self._paused = False
        self._paused_at: float | None = None
        self._closed = False
        self._last_error: str | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def root(self) -> str | None:
        return self._root

    @property
    def budget(self) -> ScanBudget:
        return self._budget

    @property
    def queue(self) -> DiscoveryQueue:
        return self._queue

    @property
    def scheduler(self) -> ScanScheduler:
        return self._scheduler

    @property
    def cache(self) -> StructureCache | None:
        return self._cache

    @property
    def watcher(self) -> Any:
        return self._watcher

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def is_scanning(self) -> bool:
        return self._scan_task is not None and not self._scan_task.done()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def configure(
        self,
        root_folder: str,
        budget: ScanBudget | Mapping[str, Any] | None = None,
    ) -> Result[dict[str, Any]]:
        """
        (Re)initialize for `root_folder`.

        Idempotent when neither root nor budget changed. A new root discards
        every piece of state; a new budget for the same root keeps the folder
        registry and the exclusion ring but restarts traversal.
        """
        if self._closed:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Engine is closed")
        root = str(root_folder or "").strip()
        if not root:
            return Result.Err(ErrorCode.INVALID_INPUT, "Root folder is required")

        if budget is None:
            parsed = self._budget.validate()
        elif isinstance(budget, ScanBudget):
            parsed = budget.validate()
        else:
            parsed = ScanBudget.from_mapping(budget)
        if not parsed.ok or parsed.data is None:
            return Result.Err(parsed.code, parsed.error or "Invalid budget", **parsed.meta)
        new_budget = parsed.data

        if root == self._root and new_budget == self._budget:
            return Result.Ok({"root": root, "changed": False, "reset": False, "budget": new_budget.to_dict()})

        root_changed = root != self._root
        await self._cancel_scan()
        if root_changed:
            self._scheduler.reset()
            self._queue.clear()
            self._last_error = None
        else:
            self._scheduler.reset_traversal()
            self._queue.clear(keep_exclusions=True)
        self._queue.reconfigure(new_budget)
        self._root = root
        self._budget = new_budget

        if root_changed and self._watcher is not None:
            try:
                self._watcher.watch(root)
            except Exception as exc:
                logger.debug("Structure cache watcher unavailable for %s: %s", root, exc)

        log_structured(
            logger,
            logging.INFO,
            "Engine configured",
            engine_id=self.engine_id,
            root=root,
            reset=root_changed,
            order_mode=new_budget.order_mode,
            estimated_total=new_budget.estimated_total_items,
        )
        self.ensure_scanning()
        return Result.Ok({"root": root, "changed": True, "reset": root_changed, "budget": new_budget.to_dict()})

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def ensure_scanning(self) -> bool:
        """
        Start a scan segment unless one is running.

        Returns True while a scan is (now) running, False when nothing can be
        scanned: not configured, paused, root unavailable, or the tree has no
        further candidates.
        """
        if self._closed or self._root is None or self._paused:
            return False
        if self._scheduler.root_error is not None:
            return False
        if self.is_scanning:
            return True

        scheduler = self._scheduler
        full = not scheduler.has_pending_work() or scheduler.capped
        if full and scheduler.pass_complete and scheduler.pass_candidates == 0:
            if not self._queue.should_reset_cycle(self._budget.estimated_total_items, True):
                return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._scan_task = loop.create_task(self._run_scan(full))
        return True

    async def _run_scan(self, full: bool) -> None:
        engine_id_var.set(self.engine_id)
        scheduler = self._scheduler
        if full:
            exhausted_dry = scheduler.pass_complete and scheduler.pass_candidates == 0
            if self._queue.should_reset_cycle(self._budget.estimated_total_items, exhausted_dry):
                self._queue.reset_cycle()
        try:
            scheduler.begin_pass(self._root or "", self._budget, full=full)
            report = await scheduler.run_pass()
            self._queue.shuffle()
            if report.error:
                self._last_error = report.error
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._last_error = sanitize_error_message(exc, "Scan pass failed")
            logger.error("Scan pass crashed: %s", self._last_error)

    async def _cancel_scan(self) -> None:
        task = self._scan_task
        self._scan_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._scheduler.cancel_inflight()

    async def request_rescan(self) -> Result[dict[str, Any]]:
        """
        Re-walk the tree from the root, bypassing cached listings.

        Items already shown stay excluded; newly added files become eligible.
        """
        if self._root is None:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Engine is not configured")
        invalidated = 0
        if self._cache is not None:
            invalidated = self._cache.invalidate_prefix(self._root)
        await self._cancel_scan()
        self._scheduler.reset_traversal()
        self._last_error = None
        started = self.ensure_scanning()
        logger.info("Rescan requested for %s (%d cached folders dropped)", self._root, invalidated)
        return Result.Ok({"root": self._root, "scanning": started, "invalidated": invalidated})

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def _availability_error(self) -> Result[Any] | None:
        if self._closed:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Engine is closed")
        if self._root is None:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Engine is not configured")
        if self._scheduler.root_error is not None:
            return Result.Err(
                ErrorCode.ROOT_UNAVAILABLE,
                f"Root folder unavailable: {self._scheduler.root_error}",
                root=self._root,
            )
        return None

    async def get_next(self) -> Result[MediaItem]:
        """
        Pop the next item, waiting up to `next_item_wait_seconds` for a scan.

        EMPTY errors carry `meta.permanent` (nothing to show at all),
        `meta.scanning` (retry shortly) or `meta.paused`.
        """
        error = self._availability_error()
        if error is not None:
            return error

        item = self._queue.next()
        if item is not None:
            if self._queue.needs_refill():
                self.ensure_scanning()
            return Result.Ok(item)

        if self._paused:
            return Result.Err(ErrorCode.EMPTY, "Queue is paused", paused=True)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + float(self._budget.next_item_wait_seconds)
        while True:
            started = self.ensure_scanning()
            item = self._queue.next()
            if item is not None:
                return Result.Ok(item)
            error = self._availability_error()
            if error is not None:
                return error
            if not started:
                if self._paused:
                    return Result.Err(ErrorCode.EMPTY, "Queue is paused", paused=True)
                return Result.Err(ErrorCode.EMPTY, "No media found under the configured root", permanent=True)
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(_POLL_INTERVAL_SECONDS, remaining))

        return Result.Err(
            ErrorCode.EMPTY,
            "Queue is empty, scanning in progress",
            scanning=True,
            retry_after=_RETRY_AFTER_SECONDS,
        )

    async def get_next_batch(self, count: int) -> Result[list[MediaItem]]:
        try:
            count = int(count)
        except (TypeError, ValueError):
            return Result.Err(ErrorCode.INVALID_INPUT, "count must be an integer")
        if count < 1 or count > self._budget.queue_capacity:
            return Result.Err(ErrorCode.INVALID_INPUT, f"count must be within [1, {self._budget.queue_capacity}]")

        first = await self.get_next()
        if not first.ok or first.data is None:
            return Result.Err(first.code, first.error or "No item available", **first.meta)
        items = [first.data]
        while len(items) < count:
            item = self._queue.next()
            if item is None:
                break
            items.append(item)
        if self._queue.needs_refill():
            self.ensure_scanning()
        return Result.Ok(items, requested=count, returned=len(items))

    async def get_previous(self) -> Result[MediaItem]:
        if self._root is None:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Engine is not configured")
        item = self._queue.previous()
        if item is None:
            return Result.Err(ErrorCode.NO_HISTORY, "No earlier item in history")
        return Result.Ok(item)

    # ------------------------------------------------------------------
    # Pause / diagnostics / teardown
    # ------------------------------------------------------------------

    async def set_paused(self, paused: bool) -> Result[dict[str, Any]]:
        paused = bool(paused)
        if paused == self._paused:
            return Result.Ok({"paused": paused, "changed": False})

        if paused:
            self._paused = True
            self._paused_at = time.monotonic()
            self._scheduler.set_paused(True)
            self._queue.freeze()
            logger.info("Engine %s paused", self.engine_id)
            return Result.Ok({"paused": True, "changed": True})

        idle = time.monotonic() - (self._paused_at or time.monotonic())
        stale = idle > float(self._budget.structure_cache_ttl_seconds)
        if stale:
            # Listings are older than the cache TTL; walk again, keep the ring.
            await self._cancel_scan()
            self._scheduler.reset_traversal()
        self._paused = False
        self._paused_at = None
        self._scheduler.set_paused(False)
        self._queue.thaw()
        logger.info("Engine %s resumed after %.1fs%s", self.engine_id, idle, " (traversal reset)" if stale else "")
        if self._queue.needs_refill():
            self.ensure_scanning()
        return Result.Ok({"paused": False, "changed": True, "traversal_reset": stale})

    def diagnostics(self) -> EngineDiagnostics:
        totals = self._scheduler.totals
        return EngineDiagnostics(
            folders_scanned=totals.folders_scanned,
            items_admitted=totals.items_admitted,
            items_skipped=totals.items_skipped,
            queue_depth=len(self._queue),
            estimated_total=self._budget.estimated_total_items,
            folders_failed=totals.folders_failed,
            folders_skipped=totals.folders_skipped,
            folders_known=len(self._scheduler.registry),
            passes=totals.passes,
            scanning=self.is_scanning,
            paused=self._paused,
            exclusion_size=self._queue.exclusion_size,
            history_size=self._queue.history_size,
            pass_state=self._scheduler.state.value,
            root=self._root,
            last_error=self._scheduler.root_error or self._last_error,
            expected_shares=self.expected_shares(_DIAGNOSTIC_SHARES_LIMIT),
        )

    async def get_diagnostics(self) -> Result[dict[str, Any]]:
        return Result.Ok(self.diagnostics().to_dict(), engine_id=self.engine_id)

    def expected_shares(self, limit: int | None = None) -> dict[str, float]:
        """Long-run admission share per scanned folder, largest first."""
        shares = self._weights.expected_shares(self._scheduler.registry.values(), self._budget)
        ranked = sorted(shares.items(), key=lambda kv: (-kv[1], kv[0]))
        if limit is not None:
            ranked = ranked[: max(0, int(limit))]
        return {folder_id: round(share, 6) for folder_id, share in ranked}

    async def close(self) -> Result[dict[str, Any]]:
        if self._closed:
            return Result.Ok({"closed": True, "changed": False})
        self._closed = True
        await self._cancel_scan()
        if self._watcher is not None:
            try:
                self._watcher.stop()
            except Exception as exc:
                logger.debug("Watcher stop failed: %s", exc)
        client_close = getattr(self._client, "close", None)
        if callable(client_close):
            try:
                await client_close()
            except Exception as exc:
                logger.debug("Browse client close failed: %s", exc)
        self._queue.clear()
        logger.debug("Engine %s closed", self.engine_id)
        return Result.Ok({"closed": True, "changed": True})
