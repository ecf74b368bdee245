import importlib

import pytest

import mfq_backend.config as config_mod


@pytest.fixture
def reload_config(monkeypatch):
    def _reload(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(config_mod)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config_mod)


def test_defaults(reload_config, monkeypatch):
    for key in ("MFQ_MAX_DEPTH", "MFQ_QUEUE_CAPACITY", "MFQ_ROOT_EXCLUDED_FOLDERS", "MFQ_ENABLE_WATCHER"):
        monkeypatch.delenv(key, raising=False)
    cfg = reload_config()
    assert cfg.DEFAULT_MAX_DEPTH == 3
    assert cfg.DEFAULT_QUEUE_CAPACITY == 1000
    assert cfg.ROOT_EXCLUDED_FOLDERS == ("_Junk", "_Edit")
    assert cfg.WATCHER_ENABLED is True


def test_env_overrides(reload_config):
    cfg = reload_config(
        MFQ_MAX_DEPTH="-1",
        MFQ_QUEUE_CAPACITY="250",
        MFQ_SCAN_TIMEOUT_SECONDS="12.5",
        MFQ_ROOT_EXCLUDED_FOLDERS=" Trash , ,Tmp",
        MFQ_ENABLE_WATCHER="off",
        MFQ_BROWSE_BACKEND="HTTP",
    )
    assert cfg.DEFAULT_MAX_DEPTH == -1
    assert cfg.DEFAULT_QUEUE_CAPACITY == 250
    assert cfg.DEFAULT_SCAN_TIMEOUT_SECONDS == 12.5
    assert cfg.ROOT_EXCLUDED_FOLDERS == ("Trash", "Tmp")
    assert cfg.WATCHER_ENABLED is False
    assert cfg.BROWSE_BACKEND == "http"


def test_out_of_range_values_are_clamped(reload_config):
    cfg = reload_config(MFQ_MAX_CONCURRENT_SCANS="500", MFQ_BROWSE_RETRY_LIMIT="-3", MFQ_RECYCLE_KEEP_FRACTION="2")
    assert cfg.DEFAULT_MAX_CONCURRENT_SCANS == 16
    assert cfg.DEFAULT_BROWSE_RETRY_LIMIT == 0
    assert cfg.DEFAULT_RECYCLE_KEEP_FRACTION == 0.9


def test_invalid_values_fall_back_to_defaults(reload_config):
    cfg = reload_config(MFQ_QUEUE_CAPACITY="lots", MFQ_LOW_WATER_MARK_FRACTION="half")
    assert cfg.DEFAULT_QUEUE_CAPACITY == 1000
    assert cfg.DEFAULT_LOW_WATER_MARK_FRACTION == 0.2


def test_blank_values_are_ignored(reload_config):
    cfg = reload_config(MFQ_HISTORY_SIZE="   ")
    assert cfg.DEFAULT_HISTORY_SIZE == 100
