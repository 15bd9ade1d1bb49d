# src/schedule_engine/core/results.py

"""
Result envelope returned by every public service operation.

Either success with a payload, or failure with an ErrorInfo. Paginated list
operations attach PaginationMeta.
"""

from __future__ import annotations

import functools
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, ParamSpec, TypeVar

from .errors import ErrorCode, SchedulingError

T = TypeVar("T")
P = ParamSpec("P")


@dataclass(slots=True, frozen=True)
class ErrorInfo:
    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


@dataclass(slots=True, frozen=True)
class PaginationMeta:
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def calculate(cls, total: int, page: int, page_size: int) -> PaginationMeta:
        total_pages = math.ceil(total / page_size) if page_size > 0 else 0
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


@dataclass(slots=True, frozen=True)
class Result(Generic[T]):
    success: bool
    data: T | None = None
    error: ErrorInfo | None = None
    meta: PaginationMeta | None = None

    @classmethod
    def ok(cls, data: T, meta: PaginationMeta | None = None) -> Result[T]:
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> Result[T]:
        return cls(success=False, error=ErrorInfo(code, message, details))

    @classmethod
    def from_error(cls, err: SchedulingError) -> Result[T]:
        return cls.fail(err.code, err.message, err.details or None)

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        """Return the payload or raise the carried error as SchedulingError."""
        if self.error is not None:
            raise SchedulingError(self.error.code, self.error.message, self.error.details)
        return self.data  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.success:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error.to_dict()
        if self.meta is not None:
            out["meta"] = {
                "page": self.meta.page,
                "page_size": self.meta.page_size,
                "total": self.meta.total,
                "total_pages": self.meta.total_pages,
                "has_next": self.meta.has_next,
                "has_previous": self.meta.has_previous,
            }
        return out


def returns_result(
    action: str,
) -> Callable[[Callable[P, Result[T]]], Callable[P, Result[T]]]:
    """
    Turn exceptions escaping a service method into a failed Result.

    SchedulingError keeps its code. Anything else is a store fault: it is logged
    with the traceback under the service module's logger and reported as
    STORE_ERROR.
    """

    def decorator(fn: Callable[P, Result[T]]) -> Callable[P, Result[T]]:
        log = logging.getLogger(fn.__module__)

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
            try:
                return fn(*args, **kwargs)
            except SchedulingError as err:
                log.debug("%s rejected: %s", action, err)
                return Result.from_error(err)
            except Exception as exc:
                log.exception("%s failed", action)
                return Result.fail(ErrorCode.STORE_ERROR, f"Failed to {action}: {exc}")

        return wrapper

    return decorator
