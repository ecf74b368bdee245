"""
Sort keys for sequential mode: newest (or oldest) first by the date embedded
in file and folder names, undated entries last in name order.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from .models import BrowseEntry

_DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(\d{4})(\d{2})(\d{2})[_-](\d{2})(\d{2})(\d{2})"),
    re.compile(r"(\d{14})"),
    re.compile(r"(\d{4})-(\d{2})-(\d{2})[_T\s](\d{2})[:-](\d{2})[:-](\d{2})"),
    re.compile(r"(\d{4})-(\d{2})-(\d{2})"),
    re.compile(r"(\d{8})"),
    re.compile(r"(\d{2})-(\d{2})-(\d{4})"),
)


def _from_groups(groups: tuple[str, ...]) -> datetime:
    if len(groups) == 1:
        ts = groups[0]
        if len(ts) == 14:
            return datetime(int(ts[0:4]), int(ts[4:6]), int(ts[6:8]), int(ts[8:10]), int(ts[10:12]), int(ts[12:14]))
        return datetime(int(ts[0:4]), int(ts[4:6]), int(ts[6:8]))
    nums = [int(g) for g in groups]
    if len(groups[0]) == 4:
        return datetime(*nums)  # type: ignore[arg-type]
    day, month, year = nums
    return datetime(year, month, day)


def extract_date_from_name(name: str) -> datetime | None:
    """Parse the first recognizable date (optionally with time) in `name`."""
    if not name:
        return None
    for pattern in _DATE_PATTERNS:
        match = pattern.search(name)
        if not match:
            continue
        try:
            return _from_groups(match.groups())
        except ValueError:
            # e.g. 8 digits that are not a calendar date; try the next pattern
            continue
    return None


def folder_date_value(name: str) -> int:
    """
    Numeric ordering value for a folder name such as "2026/1/12", "2026-01-12",
    "20260112" or a bare day number "12".
    """
    numbers = re.findall(r"\d+", name or "")
    if not numbers:
        return 0
    if len(numbers) == 1:
        return int(numbers[0])
    if len(numbers) >= 3:
        return int(numbers[0]) * 10000 + int(numbers[1]) * 100 + int(numbers[2])
    try:
        return int("".join(numbers))
    except ValueError:
        return 0


def sort_items_sequential(entries: list[BrowseEntry], direction: str = "desc") -> list[BrowseEntry]:
    descending = direction != "asc"
    dated: list[tuple[datetime, BrowseEntry]] = []
    undated: list[BrowseEntry] = []
    for entry in entries:
        dt = extract_date_from_name(entry.name)
        if dt is None:
            undated.append(entry)
        else:
            dated.append((dt, entry))
    dated.sort(key=lambda pair: (pair[0], pair[1].name.lower()), reverse=descending)
    undated.sort(key=lambda e: e.name.lower(), reverse=descending)
    return [e for _, e in dated] + undated


def sort_folders_sequential(entries: list[BrowseEntry], direction: str = "desc") -> list[BrowseEntry]:
    def _key(entry: BrowseEntry) -> tuple[int, Any]:
        return (folder_date_value(entry.name), entry.name.lower())

    return sorted(entries, key=_key, reverse=direction != "asc")
