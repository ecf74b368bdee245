"""
Safe JSON request parsing with a size limit.

Never raises to handlers (returns Result).
"""

from __future__ import annotations

import json
import os
from typing import Any

from aiohttp import web

from mfq_backend.shared import ErrorCode, Result

DEFAULT_MAX_JSON_BYTES = 256 * 1024
MIN_JSON_BYTES = 1024


def _max_json_bytes() -> int:
    try:
        raw = os.environ.get("MFQ_MAX_JSON_SIZE", "")
        if raw:
            n = int(raw)
            if n > 0:
                return n
    except Exception:
        pass
    return DEFAULT_MAX_JSON_BYTES


async def _read_json(request: web.Request, *, max_bytes: int | None = None) -> Result[dict]:
    limit = max(MIN_JSON_BYTES, int(max_bytes) if max_bytes is not None else _max_json_bytes())
    try:
        size = int(request.headers.get("Content-Length") or 0)
    except ValueError:
        size = 0
    if size > limit:
        return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large ({size} > {limit})", limit=limit, size=size)
    try:
        body = await request.content.read(limit + 1)
    except Exception as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Failed to read request body: {exc}")
    if len(body) > limit:
        return Result.Err(ErrorCode.INVALID_INPUT, f"JSON body too large (> {limit})", limit=limit)
    try:
        text = body.decode("utf-8", errors="strict")
        parsed: Any = json.loads(text) if text.strip() else {}
    except Exception as exc:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid JSON body: {exc}")
    if not isinstance(parsed, dict):
        return Result.Err(ErrorCode.INVALID_INPUT, "JSON body must be an object")
    return Result.Ok(parsed)
