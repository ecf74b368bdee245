"""Shared utilities for the media folder queue."""
from .errors import sanitize_error_message
from .log import engine_id_var, get_logger, log_structured, log_success
from .result import Result
from .time import timer
from .types import EXTENSIONS, ErrorCode, MediaFilter, MediaKind, OrderMode, classify_file

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "engine_id_var",
    "timer",
    "MediaKind",
    "MediaFilter",
    "OrderMode",
    "ErrorCode",
    "EXTENSIONS",
    "classify_file",
    "sanitize_error_message",
]
