from datetime import datetime

import pytest

from mfq_backend.features.queue.models import BrowseEntry
from mfq_backend.features.queue.ordering import (
    extract_date_from_name,
    folder_date_value,
    sort_folders_sequential,
    sort_items_sequential,
)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("IMG_20240315_142530.jpg", datetime(2024, 3, 15, 14, 25, 30)),
        ("PXL_20240315142530123.jpg", datetime(2024, 3, 15, 14, 25, 30)),
        ("2024-03-15_14-25-30.mp4", datetime(2024, 3, 15, 14, 25, 30)),
        ("holiday 2024-03-15.png", datetime(2024, 3, 15)),
        ("scan20240315.jpg", datetime(2024, 3, 15)),
        ("15-03-2024 beach.jpg", datetime(2024, 3, 15)),
    ],
)
def test_extract_date_formats(name, expected):
    assert extract_date_from_name(name) == expected


def test_extract_date_skips_invalid_calendar_values():
    assert extract_date_from_name("IMG_99999999.jpg") is None
    assert extract_date_from_name("cat.jpg") is None
    assert extract_date_from_name("") is None


@pytest.mark.parametrize(
    "name, expected",
    [("2026/1/12", 20260112), ("2026-01-12", 20260112), ("20260112", 20260112), ("12", 12), ("misc", 0), ("2026-01", 202601)],
)
def test_folder_date_value(name, expected):
    assert folder_date_value(name) == expected


def _e(name, folder=False):
    return BrowseEntry(entry_id=f"root/{name}", display_name=name, is_expandable=folder)


def test_sort_items_dated_first_then_by_name():
    entries = [_e("b.jpg"), _e("IMG_20240101_000000.jpg"), _e("a.jpg"), _e("IMG_20250101_000000.jpg")]
    desc = [e.name for e in sort_items_sequential(entries, "desc")]
    asc = [e.name for e in sort_items_sequential(entries, "asc")]
    assert desc == ["IMG_20250101_000000.jpg", "IMG_20240101_000000.jpg", "b.jpg", "a.jpg"]
    assert asc == ["IMG_20240101_000000.jpg", "IMG_20250101_000000.jpg", "a.jpg", "b.jpg"]


def test_sort_folders_by_date_value():
    entries = [_e("2023", True), _e("2025", True), _e("2024", True)]
    assert [e.name for e in sort_folders_sequential(entries)] == ["2025", "2024", "2023"]
    assert [e.name for e in sort_folders_sequential(entries, "asc")] == ["2023", "2024", "2025"]
