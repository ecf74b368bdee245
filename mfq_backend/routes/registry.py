"""
Route registration.
Binds a FolderQueueEngine to an aiohttp application and registers its routes.
"""

from __future__ import annotations

import asyncio
from typing import Any

from aiohttp import web

from mfq_backend.shared import get_logger

from .handlers import register_queue_routes

API_PREFIX = "/mfq/"
APP_KEY_ENGINE: web.AppKey[Any] = web.AppKey("mfq_engine", object)
_APP_KEY_ROUTES_REGISTERED: web.AppKey[bool] = web.AppKey("_mfq_routes_registered", bool)
_APP_KEY_RETIRED_ENGINES: web.AppKey[list] = web.AppKey("_mfq_retired_engines", list)
_CLOSE_TASKS: set[asyncio.Task] = set()

logger = get_logger(__name__)


def get_app_engine(request: web.Request) -> Any:
    return request.app.get(APP_KEY_ENGINE)


def _log_route_collisions(app: web.Application, routes: web.RouteTableDef) -> None:
    existing: set[str] = set()
    try:
        for route in app.router.routes():
            canonical = getattr(getattr(route, "resource", None), "canonical", None)
            if isinstance(canonical, str) and canonical:
                existing.add(canonical)
    except Exception:
        return
    for item in routes:
        path = getattr(item, "path", None)
        if isinstance(path, str) and path in existing:
            logger.warning("Route collision: %s is already registered", path)


def build_route_table() -> web.RouteTableDef:
    routes = web.RouteTableDef()
    register_queue_routes(routes, get_app_engine)
    return routes


async def _close_engine(engine: Any) -> None:
    try:
        await engine.close()
    except Exception as exc:
        logger.debug("Engine close failed: %s", exc)


def _retire_engine(app: web.Application, engine: Any) -> None:
    logger.warning("Replacing the engine bound to this app; closing the previous one")
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        task = loop.create_task(_close_engine(engine))
        _CLOSE_TASKS.add(task)
        task.add_done_callback(_CLOSE_TASKS.discard)
        return
    retired = app.get(_APP_KEY_RETIRED_ENGINES)
    if retired is None:
        retired = []
        app[_APP_KEY_RETIRED_ENGINES] = retired
    retired.append(engine)


def register_routes(app: web.Application, engine: Any) -> None:
    """
    Attach `engine` to `app` and register the queue routes once.

    Rebinding closes the previously bound engine. The engine is closed on
    application cleanup.
    """
    previous = app.get(APP_KEY_ENGINE)
    if previous is not None and previous is not engine:
        _retire_engine(app, previous)
    app[APP_KEY_ENGINE] = engine
    if app.get(_APP_KEY_ROUTES_REGISTERED):
        logger.debug("register_routes(app) skipped: routes already registered on this app")
        return

    routes = build_route_table()
    _log_route_collisions(app, routes)
    app.add_routes(routes)
    app[_APP_KEY_ROUTES_REGISTERED] = True

    async def _on_cleanup(_app: web.Application) -> None:
        for retired in _app.get(_APP_KEY_RETIRED_ENGINES) or ():
            await _close_engine(retired)
        current = _app.get(APP_KEY_ENGINE)
        if current is not None:
            await _close_engine(current)

    app.on_cleanup.append(_on_cleanup)
    logger.info("Routes registered under %s", API_PREFIX)
