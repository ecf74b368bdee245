"""
HTTP browse collaborator.

Talks to a media-source service exposing `GET {base_url}/browse?id=<folder>`
and answering either `{"children": [...]}` or the Result envelope
`{"ok": true, "data": {"children": [...]}}`. Children may use
`id`/`media_content_id`, `display_name`/`title` and `is_expandable`/`can_expand`.
"""
from __future__ import annotations

import asyncio
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from ...config import DEFAULT_BROWSE_TIMEOUT_SECONDS
from ...features.queue.models import BrowseEntry
from ...shared import ErrorCode, Result, get_logger, sanitize_error_message
from ...utils import parse_bool

logger = get_logger(__name__)


def _parse_child(raw: Any) -> BrowseEntry | None:
    if not isinstance(raw, dict):
        return None
    entry_id = raw.get("id") or raw.get("media_content_id")
    if not entry_id:
        return None
    name = raw.get("display_name") or raw.get("displayName") or raw.get("title") or ""
    expandable = raw.get("is_expandable", raw.get("isExpandable", raw.get("can_expand", False)))
    media_class = raw.get("media_class") or raw.get("media_content_type") or None
    return BrowseEntry(
        entry_id=str(entry_id),
        display_name=str(name),
        is_expandable=parse_bool(expandable, False),
        media_class=str(media_class) if media_class else None,
    )


def parse_browse_payload(payload: Any) -> Result[list[BrowseEntry]]:
    if isinstance(payload, dict) and "ok" in payload:
        if not payload.get("ok"):
            return Result.Err(
                str(payload.get("code") or ErrorCode.UNREACHABLE.value),
                str(payload.get("error") or "Browse service returned an error"),
            )
        payload = payload.get("data")
    if isinstance(payload, dict):
        children = payload.get("children")
    else:
        children = payload
    if not isinstance(children, list):
        return Result.Err(ErrorCode.UNREACHABLE, "Malformed browse response")
    entries = [e for e in (_parse_child(c) for c in children) if e is not None]
    return Result.Ok(entries)


class HttpBrowseClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        session: ClientSession | None = None,
    ):
        self.base_url = str(base_url or "").rstrip("/")
        self.timeout = float(timeout) if timeout is not None else float(DEFAULT_BROWSE_TIMEOUT_SECONDS)
        self.headers = dict(headers or {})
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def browse(self, folder_id: str) -> Result[list[BrowseEntry]]:
        if not self.base_url:
            return Result.Err(ErrorCode.NOT_CONFIGURED, "Browse service URL is not configured")
        session = await self._get_session()
        url = f"{self.base_url}/browse"
        try:
            async with session.get(
                url,
                params={"id": folder_id},
                headers=self.headers,
                timeout=ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    return Result.Err(ErrorCode.UNREACHABLE, f"Browse service returned {resp.status}", status=resp.status)
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.debug("Timeout browsing %s", folder_id)
            return Result.Err(ErrorCode.TIMEOUT, f"Browse service timed out after {self.timeout:g}s")
        except ClientError as exc:
            return Result.Err(ErrorCode.UNREACHABLE, sanitize_error_message(exc, "Browse service unreachable"))
        except ValueError as exc:
            return Result.Err(ErrorCode.UNREACHABLE, sanitize_error_message(exc, "Invalid JSON from browse service"))
        return parse_browse_payload(payload)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
