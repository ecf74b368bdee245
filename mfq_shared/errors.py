"""
Error text cleanup for messages that leave the engine.

Browse collaborators fail with whatever their transport raises: OS errors that
name local paths, HTTP errors that quote signed URLs. Those strings end up in
diagnostics and API envelopes, so paths and URL credentials are masked first.
"""
from __future__ import annotations

import re
from typing import Any

MAX_DETAIL_LENGTH = 200
DEFAULT_FALLBACK = "An error occurred"

# scheme://[userinfo@]rest[?query][#fragment]
_URL_RE = re.compile(r"\b([a-z][a-z0-9+.-]*://)(?:[^\s/@]+@)?([^\s?#]*)(?:[?#]\S*)?", re.IGNORECASE)
_PATH_PATTERNS = (
    re.compile(r"[A-Za-z]:\\\S+"),
    re.compile(r"\\\\[^\s\\]+\\\S+"),
    re.compile(r"(?<![\w:/?&=#%.-])/(?!/)[^\s#?]+"),
)


def _describe(exc: Any) -> str:
    try:
        text = str(exc)
    except Exception:
        text = ""
    if not text.strip() and isinstance(exc, BaseException):
        text = type(exc).__name__
    return text


def _scrub(text: str) -> str:
    text = _URL_RE.sub(lambda m: m.group(1) + m.group(2), text)
    for pattern in _PATH_PATTERNS:
        text = pattern.sub("[path]", text)
    return " ".join(text.split())


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    One-line, client-safe message of the form ``"<fallback>: <detail>"``.

    Returns just the fallback when `exc` carries nothing usable. The detail is
    cut to MAX_DETAIL_LENGTH characters.
    """
    fallback = fallback or DEFAULT_FALLBACK
    if exc is None:
        return fallback
    detail = _scrub(_describe(exc))
    if not detail:
        return fallback
    if len(detail) > MAX_DETAIL_LENGTH:
        detail = detail[: MAX_DETAIL_LENGTH - 3] + "..."
    return f"{fallback}: {detail}"
