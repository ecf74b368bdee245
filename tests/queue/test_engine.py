import asyncio
import time

import pytest

from mfq_backend.features.queue import ScanBudget, StructureCache
from mfq_backend.features.queue.models import BrowseEntry
from mfq_backend.shared import ErrorCode
from tests.fakes import FakeBrowseClient, build_tree, files


async def _draw(engine, n):
    out = []
    for _ in range(n):
        res = await engine.get_next()
        assert res.ok, (res.code, res.error, res.meta)
        out.append(res.data)
    return out


@pytest.mark.asyncio
async def test_get_next_requires_configuration(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient({}), rng=rng)
    res = await engine.get_next()
    assert not res.ok
    assert res.code == ErrorCode.NOT_CONFIGURED.value


@pytest.mark.asyncio
async def test_configure_rejects_bad_input(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient({}), rng=rng)
    assert (await engine.configure("")).code == ErrorCode.INVALID_INPUT.value
    res = await engine.configure("root", {"queueCapacity": 0, "media_kind": "audio"})
    assert res.code == ErrorCode.INVALID_INPUT.value
    assert len(res.meta["problems"]) == 2
    assert engine.root is None


@pytest.mark.asyncio
async def test_no_item_repeats_while_exclusion_ring_has_room(engine_factory, rng):
    client = FakeBrowseClient(build_tree("root", {"A": files(30), "B": files(20, prefix="b")}))
    engine = engine_factory(client, rng=rng)
    await engine.configure("root", {"queue_capacity": 10})

    ids = [item.item_id for item in await _draw(engine, 200)]

    for a, b in zip(ids, ids[1:]):
        assert a != b
    for start in range(len(ids) - 10):
        window = ids[start:start + 10]
        assert len(set(window)) == 10


@pytest.mark.asyncio
async def test_uniform_fallback_returns_every_item(engine_factory, rng):
    tree = build_tree("root", {"A": files(20), "B": {"C": files(10, prefix="c")}})
    engine = engine_factory(FakeBrowseClient(tree), rng=rng)
    await engine.configure("root", {"queue_capacity": 100})

    drawn = {item.item_id for item in await _draw(engine, 30)}
    expected = {e.entry_id for entries in tree.values() for e in entries if not e.is_expandable}

    assert drawn == expected
    diag = (await engine.get_diagnostics()).data
    assert diag["items_admitted"] == 30
    assert diag["estimated_total"] is None


@pytest.mark.asyncio
async def test_permanently_empty_when_no_media(engine_factory, rng):
    client = FakeBrowseClient(build_tree("root", {"docs": {"a.txt": None, "b.pdf": None}}))
    engine = engine_factory(client, rng=rng)
    await engine.configure("root")

    res = await engine.get_next()

    assert not res.ok
    assert res.code == ErrorCode.EMPTY.value
    assert res.meta.get("permanent") is True


@pytest.mark.asyncio
async def test_temporarily_empty_while_scanning(engine_factory, rng):
    client = FakeBrowseClient(build_tree("root", {"A": files(3)}), delay=1.0)
    engine = engine_factory(client, rng=rng)
    await engine.configure("root", {"next_item_wait_seconds": 0.1})

    res = await engine.get_next()

    assert res.code == ErrorCode.EMPTY.value
    assert res.meta.get("scanning") is True
    assert res.meta.get("retry_after") == 1
    assert not res.meta.get("permanent")


@pytest.mark.asyncio
async def test_root_unavailable_is_surfaced(engine_factory, rng):
    client = FakeBrowseClient(build_tree("root", {"A": files(3)}), fail={"root": 10})
    engine = engine_factory(client, rng=rng)
    await engine.configure("root")

    res = await engine.get_next()

    assert res.code == ErrorCode.ROOT_UNAVAILABLE.value
    assert client.call_counts["root"] == 2
    diag = (await engine.get_diagnostics()).data
    assert diag["pass_state"] == "root_unavailable"
    assert diag["last_error"]


@pytest.mark.asyncio
async def test_previous_walks_history(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(10)})), rng=rng)
    await engine.configure("root")

    assert (await engine.get_previous()).code == ErrorCode.NO_HISTORY.value
    first, second = await _draw(engine, 2)

    prev = await engine.get_previous()
    assert prev.ok and prev.data == first
    assert (await engine.get_previous()).code == ErrorCode.NO_HISTORY.value
    forward = await engine.get_next()
    assert forward.data == second


@pytest.mark.asyncio
async def test_configure_is_idempotent_and_root_change_resets(engine_factory, rng):
    listings = build_tree("root", {"A": files(5)})
    listings.update(build_tree("other", {"B": files(4, prefix="b")}))
    client = FakeBrowseClient(listings)
    engine = engine_factory(client, rng=rng)

    first = await engine.configure("root", {"queue_capacity": 50})
    await _draw(engine, 1)
    again = await engine.configure("root", {"queue_capacity": 50})

    assert first.data["changed"] is True
    assert again.data["changed"] is False
    assert client.call_counts["root"] == 1

    switched = await engine.configure("other", {"queue_capacity": 50})
    assert switched.data["reset"] is True
    assert engine.queue.exclusion_size == 0
    items = await _draw(engine, 4)
    assert {item.folder_id for item in items} == {"other/B"}
    assert "root" not in engine.scheduler.registry


@pytest.mark.asyncio
async def test_budget_change_keeps_exclusions(engine_factory, rng):
    client = FakeBrowseClient(build_tree("root", {"A": {**files(5), **files(5, prefix="v", ext=".mp4")}}))
    engine = engine_factory(client, rng=rng)
    await engine.configure("root", {"queue_capacity": 50})
    shown = (await _draw(engine, 1))[0]

    res = await engine.configure("root", {"queue_capacity": 50, "media_kind": "video"})

    assert res.data["reset"] is False
    assert engine.queue.is_excluded(shown.item_id)
    kinds = {item.kind for item in await _draw(engine, 3)}
    assert kinds == {"video"}


@pytest.mark.asyncio
async def test_paused_engine_reports_paused_then_resumes(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(3)})), rng=rng)
    await engine.configure("root")
    await engine.set_paused(True)
    await asyncio.sleep(0.05)

    res = await engine.get_next()
    assert res.code == ErrorCode.EMPTY.value
    assert res.meta.get("paused") is True
    assert engine.queue.frozen

    resumed = await engine.set_paused(False)
    assert resumed.data["traversal_reset"] is False
    assert (await engine.get_next()).ok


@pytest.mark.asyncio
async def test_resume_after_cache_ttl_resets_traversal(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(3)})), rng=rng)
    await engine.configure("root", {"structure_cache_ttl_seconds": 1})
    await _draw(engine, 1)
    await engine.set_paused(True)
    engine._paused_at = time.monotonic() - 5

    res = await engine.set_paused(False)

    assert res.data["traversal_reset"] is True
    assert engine.queue.exclusion_size == 1


@pytest.mark.asyncio
async def test_finite_collection_recycles_without_immediate_repeat(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(5)})), rng=rng)
    await engine.configure("root", {"queue_capacity": 10})

    first_round = await _draw(engine, 5)
    assert len({item.item_id for item in first_round}) == 5

    nxt = (await _draw(engine, 1))[0]
    assert nxt.item_id != first_round[-1].item_id
    assert nxt.item_id in {item.item_id for item in first_round}


@pytest.mark.asyncio
async def test_get_next_batch(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(20)})), rng=rng)
    await engine.configure("root", {"queue_capacity": 50})

    res = await engine.get_next_batch(5)
    assert res.ok
    assert len(res.data) == 5
    assert len({item.item_id for item in res.data}) == 5
    assert (await engine.get_next_batch(0)).code == ErrorCode.INVALID_INPUT.value
    assert (await engine.get_next_batch(1000)).code == ErrorCode.INVALID_INPUT.value


@pytest.mark.asyncio
async def test_sequential_mode_serves_newest_first(engine_factory, rng):
    tree = {"A": {"IMG_20240101_000000.jpg": None, "IMG_20250101_000000.jpg": None, "IMG_20230101_000000.jpg": None}}
    engine = engine_factory(FakeBrowseClient(build_tree("root", tree)), rng=rng)
    await engine.configure("root", {"orderMode": "sequential"})

    names = [item.display_name for item in await _draw(engine, 3)]

    assert names == ["IMG_20250101_000000.jpg", "IMG_20240101_000000.jpg", "IMG_20230101_000000.jpg"]


@pytest.mark.asyncio
async def test_request_rescan_picks_up_new_files(engine_factory, rng):
    listings = build_tree("root", {"A": files(2)})
    client = FakeBrowseClient(listings)
    engine = engine_factory(client, rng=rng, cache=StructureCache(ttl_seconds=3600))
    await engine.configure("root")
    await _draw(engine, 2)

    listings["root/A"].append(BrowseEntry(entry_id="root/A/new.jpg", display_name="new.jpg"))
    res = await engine.request_rescan()
    assert res.ok
    assert res.data["invalidated"] >= 1

    item = (await _draw(engine, 1))[0]
    assert item.item_id == "root/A/new.jpg"


@pytest.mark.asyncio
async def test_diagnostics_snapshot(engine_factory, rng):
    tree = build_tree("root", {"A": {**files(4), "readme.txt": None}})
    engine = engine_factory(FakeBrowseClient(tree), rng=rng)
    await engine.configure("root", {"estimatedTotalItems": 4000, "sampleTarget": 4000})
    await _draw(engine, 1)

    res = await engine.get_diagnostics()

    assert res.ok
    diag = res.data
    for key in ("folders_scanned", "items_admitted", "items_skipped", "queue_depth", "estimated_total"):
        assert key in diag
    assert diag["estimated_total"] == 4000
    assert diag["folders_scanned"] == 2
    assert diag["items_skipped"] == 1
    assert diag["queue_depth"] == 3
    assert diag["history_size"] == 1
    assert res.meta["engine_id"] == engine.engine_id


@pytest.mark.asyncio
async def test_diagnostics_report_expected_shares(engine_factory, rng):
    tree = build_tree("root", {"A": files(4), "B": files(2, prefix="b")})
    engine = engine_factory(FakeBrowseClient(tree), rng=rng)
    await engine.configure("root", {"priorityPatterns": [{"path": "root/B", "weightMultiplier": 3}]})
    await _draw(engine, 1)
    for _ in range(100):
        if engine.diagnostics().folders_scanned == 3:
            break
        await asyncio.sleep(0.01)

    diag = (await engine.get_diagnostics()).data

    assert list(diag["expected_shares"]) == ["root/B", "root/A"]
    assert diag["expected_shares"]["root/B"] == pytest.approx(0.6)
    assert diag["expected_shares"]["root/A"] == pytest.approx(0.4)
    assert engine.expected_shares(limit=1) == {"root/B": pytest.approx(0.6)}


@pytest.mark.asyncio
async def test_close_is_idempotent(engine_factory, rng):
    engine = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(3)})), rng=rng)
    await engine.configure("root")

    assert (await engine.close()).data["changed"] is True
    assert (await engine.close()).data["changed"] is False
    assert (await engine.get_next()).code == ErrorCode.NOT_CONFIGURED.value


@pytest.mark.asyncio
async def test_engines_are_independent(engine_factory):
    one = engine_factory(FakeBrowseClient(build_tree("root", {"A": files(3)})))
    two = engine_factory(FakeBrowseClient(build_tree("root", {"B": files(3, prefix="b")})))
    await one.configure("root")
    await two.configure("root")

    a = await _draw(one, 3)
    b = await _draw(two, 3)

    assert {item.folder_id for item in a} == {"root/A"}
    assert {item.folder_id for item in b} == {"root/B"}
