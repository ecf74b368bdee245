"""
Wall-clock timing for scan pass segments.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager


@contextmanager
def timer(label: str, logger: logging.Logger, *, slow_after: float | None = None) -> Iterator[None]:
    """
    Log how long the block took.

    Logged at DEBUG, or at WARNING once the block ran longer than `slow_after`
    seconds.

        with timer("Scan pass 3 segment", logger, slow_after=35.0):
            ...
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        slow = slow_after is not None and elapsed > slow_after
        logger.log(logging.WARNING if slow else logging.DEBUG, "%s took %.3fs", label, elapsed)
