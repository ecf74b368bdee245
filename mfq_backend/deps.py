"""
Dependency injection - builds a FolderQueueEngine.
Simple, debug-friendly DI without framework magic.
"""

from __future__ import annotations

from typing import Any

from .adapters.browse import HttpBrowseClient, LocalBrowseClient
from .adapters.fs import StructureCacheWatcher
from .config import BROWSE_BACKEND, BROWSE_URL, DEFAULT_BROWSE_TIMEOUT_SECONDS, WATCHER_ENABLED
from .features.queue import FolderQueueEngine, ScanBudget, StructureCache, get_shared_structure_cache
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)

_BACKENDS = ("filesystem", "http")


def _build_browse_client(backend: str, browse_url: str) -> Result[Any]:
    if backend == "filesystem":
        return Result.Ok(LocalBrowseClient())
    if backend == "http":
        if not browse_url:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "MFQ_BROWSE_URL is required for the http browse backend")
        return Result.Ok(HttpBrowseClient(browse_url, timeout=DEFAULT_BROWSE_TIMEOUT_SECONDS))
    return Result.Err(ErrorCode.INVALID_INPUT, f"Unknown browse backend {backend!r}; expected one of {list(_BACKENDS)}")


def build_engine(
    *,
    browse_client: Any = None,
    budget: ScanBudget | None = None,
    cache: StructureCache | None = None,
    backend: str | None = None,
    browse_url: str | None = None,
    watcher_enabled: bool | None = None,
) -> Result[FolderQueueEngine]:
    """
    Wire config, browse adapter, structure cache and (for local roots) the
    filesystem watcher into an engine. Call `engine.configure(root)` next.
    """
    backend = str(backend or BROWSE_BACKEND).strip().lower()
    client = browse_client
    if client is None:
        built = _build_browse_client(backend, str(browse_url if browse_url is not None else BROWSE_URL))
        if not built.ok:
            logger.error("Failed to build browse client: %s", built.error)
            return Result.Err(built.code, built.error or "Failed to build browse client")
        client = built.data

    cache = cache if cache is not None else get_shared_structure_cache()
    use_watcher = WATCHER_ENABLED if watcher_enabled is None else bool(watcher_enabled)
    watcher = None
    if use_watcher and isinstance(client, LocalBrowseClient):
        watcher = StructureCacheWatcher(cache)

    try:
        engine = FolderQueueEngine(client, budget=budget, cache=cache, watcher=watcher)
    except Exception as exc:
        logger.error("Failed to build engine: %s", exc)
        return Result.Err(ErrorCode.INVALID_INPUT, f"Failed to build engine: {exc}")

    log_success(logger, f"Folder queue engine {engine.engine_id} ready ({backend}, watcher={'on' if watcher else 'off'})")
    return Result.Ok(engine, backend=backend, watcher=watcher is not None)
