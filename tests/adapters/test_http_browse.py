import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from mfq_backend.adapters.browse import HttpBrowseClient
from mfq_backend.adapters.browse.http import parse_browse_payload

_LISTINGS = {
    "media-source://local": {
        "ok": True,
        "data": {
            "children": [
                {"id": "media-source://local/2024", "display_name": "2024", "is_expandable": True},
                {"media_content_id": "media-source://local/a.jpg", "title": "a.jpg", "media_class": "image"},
                {"title": "no id, dropped"},
            ]
        },
    },
    "plain": {"children": [{"id": "plain/b.mp4", "displayName": "b.mp4", "can_expand": "false"}]},
    "denied": {"ok": False, "code": "UNREACHABLE", "error": "share offline"},
}

async def _browse(request: web.Request) -> web.Response:
    folder_id = request.query.get("id", "")
    if folder_id == "slow":
        await asyncio.sleep(0.5)
        return web.json_response({"children": []})
    if folder_id == "broken":
        return web.Response(text="{not json", content_type="application/json")
    if folder_id not in _LISTINGS:
        return web.json_response({"error": "not found"}, status=404)
    return web.json_response(_LISTINGS[folder_id])


async def _start_server() -> TestServer:
    app = web.Application()
    app.router.add_get("/browse", _browse)
    server = TestServer(app)
    await server.start_server()
    return server

@pytest.mark.asyncio
async def test_http_browse_envelope_and_plain_payloads():
    server = await _start_server()
    client = HttpBrowseClient(str(server.make_url("/")), timeout=5)
    try:
        res = await client.browse("media-source://local")
        assert res.ok, res.error
        assert [(e.entry_id, e.name, e.is_expandable, e.media_class) for e in res.data] == [
            ("media-source://local/2024", "2024", True, None),
            ("media-source://local/a.jpg", "a.jpg", False, "image"),
        ]

        plain = await client.browse("plain")
        assert plain.ok
        assert plain.data[0].name == "b.mp4"
        assert plain.data[0].is_expandable is False
    finally:
        await client.close()
        await server.close()

@pytest.mark.asyncio
async def test_http_browse_error_mapping():
    server = await _start_server()
    client = HttpBrowseClient(str(server.make_url("/")), timeout=0.2)
    try:
        missing = await client.browse("nope")
        assert missing.code == "UNREACHABLE"
        assert missing.meta["status"] == 404

        denied = await client.browse("denied")
        assert denied.code == "UNREACHABLE"
        assert denied.error == "share offline"

        broken = await client.browse("broken")
        assert broken.code == "UNREACHABLE"

        slow = await client.browse("slow")
        assert slow.code == "TIMEOUT"
    finally:
        await client.close()
        await server.close()

@pytest.mark.asyncio
async def test_http_browse_unreachable_host():
    client = HttpBrowseClient("http://127.0.0.1:9", timeout=2)
    try:
        res = await client.browse("x")
        assert res.code in ("UNREACHABLE", "TIMEOUT")
    finally:
        await client.close()

@pytest.mark.asyncio
async def test_http_browse_requires_url():
    res = await HttpBrowseClient("").browse("x")
    assert res.code == "NOT_CONFIGURED"

def test_parse_browse_payload_rejects_malformed():
    assert parse_browse_payload({"data": "oops"}).code == "UNREACHABLE"
    assert parse_browse_payload(None).code == "UNREACHABLE"
    assert parse_browse_payload([{"id": "a"}]).data[0].entry_id == "a"
