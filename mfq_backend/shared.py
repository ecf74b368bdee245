"""Backend-facing alias for shared utilities."""

from __future__ import annotations

import mfq_shared as _root_shared
from mfq_shared.types import EXTENSIONS

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
engine_id_var = _root_shared.engine_id_var
classify_file = _root_shared.classify_file
sanitize_error_message = _root_shared.sanitize_error_message
timer = _root_shared.timer
MediaKind = _root_shared.MediaKind
MediaFilter = _root_shared.MediaFilter
OrderMode = _root_shared.OrderMode

__all__ = [
    "Result",
    "ErrorCode",
    "get_logger",
    "log_success",
    "log_structured",
    "engine_id_var",
    "classify_file",
    "sanitize_error_message",
    "timer",
    "MediaKind",
    "MediaFilter",
    "OrderMode",
    "EXTENSIONS",
]
