import random
import sys

import pytest
import pytest_asyncio

from .repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture(autouse=True)
def _fresh_shared_structure_cache():
    from mfq_backend.features.queue.structure_cache import _reset_shared_structure_cache_for_tests

    _reset_shared_structure_cache_for_tests()
    yield
    _reset_shared_structure_cache_for_tests()


@pytest_asyncio.fixture
async def engine_factory():
    from mfq_backend.features.queue import FolderQueueEngine

    created = []

    def _make(client, **kwargs):
        engine = FolderQueueEngine(client, **kwargs)
        created.append(engine)
        return engine

    try:
        yield _make
    finally:
        for engine in created:
            try:
                await engine.close()
            except Exception:
                pass
