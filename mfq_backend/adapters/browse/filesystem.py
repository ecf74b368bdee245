"""
Local filesystem browse collaborator.

Folder identifiers are absolute directory paths; children are listed with a
single `os.scandir` in a worker thread so the event loop never blocks.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path

from ...features.queue.models import BrowseEntry
from ...shared import ErrorCode, Result, classify_file, get_logger, sanitize_error_message

logger = get_logger(__name__)


class LocalBrowseClient:
    def __init__(self, *, include_hidden: bool = False, follow_symlinks: bool = False):
        self.include_hidden = bool(include_hidden)
        self.follow_symlinks = bool(follow_symlinks)

    async def browse(self, folder_id: str) -> Result[list[BrowseEntry]]:
        if not str(folder_id or "").strip():
            return Result.Err(ErrorCode.INVALID_INPUT, "Folder id is required")
        try:
            entries = await asyncio.to_thread(self._list, folder_id)
        except FileNotFoundError:
            return Result.Err(ErrorCode.UNREACHABLE, "Folder does not exist")
        except NotADirectoryError:
            return Result.Err(ErrorCode.UNREACHABLE, "Not a directory")
        except PermissionError:
            return Result.Err(ErrorCode.UNREACHABLE, "Permission denied")
        except OSError as exc:
            return Result.Err(ErrorCode.UNREACHABLE, sanitize_error_message(exc, "Folder listing failed"))
        return Result.Ok(entries)

    def _list(self, folder_id: str) -> list[BrowseEntry]:
        out: list[BrowseEntry] = []
        with os.scandir(folder_id) as it:
            for entry in it:
                if not self.include_hidden and entry.name.startswith("."):
                    continue
                try:
                    is_dir = entry.is_dir(follow_symlinks=self.follow_symlinks)
                except OSError:
                    continue
                path = str(Path(entry.path))
                if is_dir:
                    out.append(BrowseEntry(entry_id=path, display_name=entry.name, is_expandable=True))
                    continue
                kind = classify_file(entry.name)
                out.append(
                    BrowseEntry(
                        entry_id=path,
                        display_name=entry.name,
                        is_expandable=False,
                        media_class=kind if kind != "unknown" else None,
                    )
                )
        return out
