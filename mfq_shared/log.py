"""
Logging utilities with consistent formatting and emoji indicators.
"""
import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final

# Emoji indicators for log levels
EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

# Global logger prefix
PREFIX: Final[str] = "📂 FolderQueue"

engine_id_var: ContextVar[str] = ContextVar("engine_id", default="")


class EngineContextFilter(logging.Filter):
    """Inject `engine_id` from `engine_id_var` into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.engine_id = engine_id_var.get("")
        except Exception:
            record.engine_id = ""
        return True


class EmojiFormatter(logging.Formatter):
    """Custom formatter that adds emoji based on log level."""

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "📂")

        # Format: 📂 FolderQueue [✅] module [engine]: message
        try:
            eid = str(getattr(record, "engine_id", "") or "").strip()
        except Exception:
            eid = ""
        eid_part = f" [{eid}]" if eid else ""
        log_format = f"{PREFIX} [{emoji}] %(name)s{eid_part}: %(message)s"
        formatter = logging.Formatter(log_format)
        return formatter.format(record)


def _ensure_context_filter(logger: logging.Logger) -> None:
    try:
        if any(isinstance(f, EngineContextFilter) for f in list(logger.filters or [])):
            return
        logger.addFilter(EngineContextFilter())
    except Exception:
        pass


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Get a logger with the FolderQueue prefix and emoji indicators.

    Args:
        name: Logger name (usually __name__)
        level: Optional logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance with emoji formatting
    """
    if name.startswith("__main__"):
        name = "main"
    elif "." in name:
        parts = name.split(".")
        if "features" in parts:
            idx = parts.index("features")
            name = ".".join(parts[idx + 1:])
        elif "adapters" in parts:
            idx = parts.index("adapters")
            name = ".".join(parts[idx:])

    logger = logging.getLogger(f"mfq.{name}")
    _ensure_context_filter(logger)

    if level is not None:
        logger.setLevel(level)
    elif not logger.handlers:
        logger.setLevel(logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(EmojiFormatter())
        logger.addHandler(handler)

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    return logger


# Add SUCCESS level
SUCCESS_LEVEL: Final[int] = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str) -> None:
    """Log a success message with ✅ emoji."""
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit a structured JSON log entry with contextual fields."""
    payload = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
