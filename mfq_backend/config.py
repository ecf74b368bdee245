"""
Configuration defaults for the media folder queue.

Every value can be overridden through environment variables; the slideshow
configuration (ScanBudget) then overrides these per engine instance.
"""
import logging
import os

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        try:
            val = os.getenv(name)
        except Exception:
            val = None
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if not name:
            continue
        try:
            if name in os.environ:
                return env_bool(name, default)
        except Exception:
            continue
    return default


# Traversal bounds
# A negative MFQ_MAX_DEPTH means "unlimited".
DEFAULT_MAX_DEPTH = _env_int(3, "MFQ_MAX_DEPTH", min_value=-1, max_value=64)
DEFAULT_GLOBAL_ITEM_CAP = _env_int(10_000, "MFQ_GLOBAL_ITEM_CAP", min_value=1, max_value=10_000_000)
DEFAULT_MAX_ITEMS_PER_FOLDER = _env_int(5_000, "MFQ_MAX_ITEMS_PER_FOLDER", min_value=1, max_value=10_000_000)
DEFAULT_SCAN_TIMEOUT_SECONDS = _env_float(45.0, "MFQ_SCAN_TIMEOUT_SECONDS", min_value=0.05, max_value=3600.0)
DEFAULT_MAX_CONCURRENT_SCANS = _env_int(2, "MFQ_MAX_CONCURRENT_SCANS", min_value=1, max_value=16)

# Browse collaborator
DEFAULT_BROWSE_TIMEOUT_SECONDS = _env_float(30.0, "MFQ_BROWSE_TIMEOUT_SECONDS", min_value=0.05, max_value=600.0)
DEFAULT_BROWSE_RETRY_LIMIT = _env_int(1, "MFQ_BROWSE_RETRY_LIMIT", min_value=0, max_value=1)

# Queue
DEFAULT_QUEUE_CAPACITY = _env_int(1000, "MFQ_QUEUE_CAPACITY", min_value=1, max_value=1_000_000)
DEFAULT_LOW_WATER_MARK_FRACTION = _env_float(0.2, "MFQ_LOW_WATER_MARK_FRACTION", min_value=0.0, max_value=1.0)
DEFAULT_HISTORY_SIZE = _env_int(100, "MFQ_HISTORY_SIZE", min_value=1, max_value=100_000)
DEFAULT_RECYCLE_KEEP_FRACTION = _env_float(0.3, "MFQ_RECYCLE_KEEP_FRACTION", min_value=0.0, max_value=0.9)
DEFAULT_NEXT_ITEM_WAIT_SECONDS = _env_float(5.0, "MFQ_NEXT_ITEM_WAIT_SECONDS", min_value=0.0, max_value=600.0)

# Batched shuffle (empirical constants; see DESIGN.md)
SHUFFLE_MIN_BATCH = _env_int(10, "MFQ_SHUFFLE_MIN_BATCH", min_value=1, max_value=100_000)
SHUFFLE_MAX_BATCH = _env_int(1000, "MFQ_SHUFFLE_MAX_BATCH", min_value=1, max_value=1_000_000)
SHUFFLE_FRACTION = _env_float(0.10, "MFQ_SHUFFLE_FRACTION", min_value=0.0, max_value=1.0)

# Structure cache (folder listings reused across quick reconnects)
STRUCTURE_CACHE_TTL_SECONDS = _env_float(24.0 * 3600.0, "MFQ_STRUCTURE_CACHE_TTL_SECONDS", min_value=1.0, max_value=30.0 * 24.0 * 3600.0)
STRUCTURE_CACHE_MAX_FOLDERS = _env_int(50_000, "MFQ_STRUCTURE_CACHE_MAX_FOLDERS", min_value=10, max_value=5_000_000)

# Folders ignored when they sit directly under the configured root
ROOT_EXCLUDED_FOLDERS = tuple(
    name.strip()
    for name in str(_env_raw("MFQ_ROOT_EXCLUDED_FOLDERS", default="_Junk,_Edit") or "").split(",")
    if name.strip()
)

# Engine wiring (deps.build_engine)
BROWSE_BACKEND = str(_env_raw("MFQ_BROWSE_BACKEND", default="filesystem") or "filesystem").lower()
BROWSE_URL = str(_env_raw("MFQ_BROWSE_URL", default="") or "")
WATCHER_ENABLED = _env_bool(True, "MFQ_ENABLE_WATCHER")
