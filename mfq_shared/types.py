"""
Shared types, enums, and constants.
"""
import os
from enum import Enum
from typing import Final, Literal

# Media classifications handed to the slideshow
MediaKind = Literal["image", "video", "unknown"]


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    NOT_CONFIGURED = "NOT_CONFIGURED"

    # Browse collaborator
    UNREACHABLE = "UNREACHABLE"
    TIMEOUT = "TIMEOUT"

    # Queue / navigation
    EMPTY = "EMPTY"
    NO_HISTORY = "NO_HISTORY"

    # Fatal for the current configuration
    ROOT_UNAVAILABLE = "ROOT_UNAVAILABLE"


# File extensions by kind
EXTENSIONS: Final[dict[MediaKind, set[str]]] = {
    "image": {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".heic"},
    "video": {".mp4", ".webm", ".ogg", ".mov", ".m4v", ".mkv"},
    "unknown": set(),
}


def _clean_name(filename: str) -> str:
    cleaned = str(filename or "")
    # Some media sources append a mime type ("a.jpg|image/jpeg") or a query string.
    if "|" in cleaned:
        cleaned = cleaned.split("|", 1)[0]
    if "?" in cleaned:
        cleaned = cleaned.split("?", 1)[0]
    cleaned = cleaned.rstrip("/").rsplit("/", 1)[-1]
    if cleaned.endswith("_shared"):
        cleaned = cleaned[: -len("_shared")]
    return cleaned


def classify_file(filename: str) -> MediaKind:
    """
    Classify file by extension.

    Args:
        filename: File name, path or media identifier

    Returns:
        Media kind (image, video, unknown)
    """
    ext = os.path.splitext(_clean_name(filename))[1].lower()

    for kind, exts in EXTENSIONS.items():
        if ext in exts:
            return kind

    return "unknown"


class OrderMode(str, Enum):
    """How discovered items are ordered for the slideshow."""
    RANDOM = "random"           # Weighted sampling + shuffled queue
    SEQUENTIAL = "sequential"   # Every item, ordered by date parsed from names


class MediaFilter(str, Enum):
    """Which media kinds are admitted."""
    ALL = "all"
    IMAGE = "image"
    VIDEO = "video"
