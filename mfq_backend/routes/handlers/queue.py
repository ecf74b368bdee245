"""
Slideshow queue endpoints.

  GET  /mfq/queue/next[?count=N]
  GET  /mfq/queue/previous
  POST /mfq/queue/pause        {"paused": bool}
  POST /mfq/queue/configure    {"root": str, "budget": {...}}
  POST /mfq/queue/rescan
  GET  /mfq/queue/diagnostics
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from aiohttp import web

from mfq_backend.shared import ErrorCode, Result, get_logger, sanitize_error_message
from mfq_backend.utils import parse_bool, parse_int

from ..core import _json_response, _read_json

logger = get_logger(__name__)

EngineGetter = Callable[[web.Request], Any]


def register_queue_routes(routes: web.RouteTableDef, get_engine: EngineGetter) -> None:
    def _engine_or_error(request: web.Request) -> tuple[Any, web.Response | None]:
        try:
            engine = get_engine(request)
        except Exception as exc:
            logger.debug("Engine lookup failed: %s", exc)
            engine = None
        if engine is None:
            return None, _json_response(Result.Err(ErrorCode.NOT_CONFIGURED, "Folder queue engine is not available"))
        return engine, None

    @routes.get("/mfq/queue/next")
    async def get_next(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        raw_count = request.query.get("count")
        try:
            if raw_count is None:
                result = await engine.get_next()
            else:
                count = parse_int(raw_count)
                if count is None:
                    return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "count must be an integer"))
                result = await engine.get_next_batch(count)
        except Exception as exc:
            logger.error("get_next failed: %s", exc)
            return _json_response(
                Result.Err("INTERNAL", sanitize_error_message(exc, "Failed to get next item")), status=500
            )
        return _json_response(result)

    @routes.get("/mfq/queue/previous")
    async def get_previous(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        return _json_response(await engine.get_previous())

    @routes.post("/mfq/queue/pause")
    async def set_paused(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        payload = body.data or {}
        if "paused" not in payload:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Missing 'paused'"))
        return _json_response(await engine.set_paused(parse_bool(payload.get("paused"), False)))

    @routes.post("/mfq/queue/configure")
    async def configure(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        body = await _read_json(request)
        if not body.ok:
            return _json_response(body)
        payload = body.data or {}
        root = payload.get("root") or payload.get("root_folder") or payload.get("rootFolder")
        budget = payload.get("budget")
        if budget is not None and not isinstance(budget, dict):
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "'budget' must be an object"))
        return _json_response(await engine.configure(str(root or ""), budget))

    @routes.post("/mfq/queue/rescan")
    async def rescan(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        return _json_response(await engine.request_rescan())

    @routes.get("/mfq/queue/diagnostics")
    async def diagnostics(request: web.Request) -> web.Response:
        engine, error = _engine_or_error(request)
        if error is not None:
            return error
        return _json_response(await engine.get_diagnostics())
