"""
Result pattern for error handling without exceptions.
Engine and adapter methods return Result[T] so callers never see a raw traceback.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from .types import ErrorCode

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Outcome of an engine or browse operation.

    `code` is "OK" on success, otherwise an ErrorCode value. `meta` carries
    envelope extras such as `engine_id` or `retry_after`.

        async def browse(folder_id: str) -> Result[list[BrowseEntry]]:
            if not reachable:
                return Result.Err(ErrorCode.UNREACHABLE, f"Cannot browse {folder_id}")
            return Result.Ok(entries)
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)
