"""
Browse collaborator contract.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ...features.queue.models import BrowseEntry
from ...shared import Result


@runtime_checkable
class BrowseClient(Protocol):
    """
    Given a folder identifier, return its immediate children.

    Implementations return `Result.Err` with `UNREACHABLE` or `TIMEOUT`
    rather than raising; the scheduler still maps stray exceptions itself.
    """

    async def browse(self, folder_id: str) -> Result[list[BrowseEntry]]:
        ...
