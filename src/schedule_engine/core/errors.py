# src/schedule_engine/core/errors.py

"""
Error codes and the engine exception.

Services raise SchedulingError internally and hand it back to callers as a
failed Result (see results.py), so UI layers never need a catch boundary.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    DEPENDENCY_NOT_FOUND = "DEPENDENCY_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DEPENDENCIES_NOT_MET = "DEPENDENCIES_NOT_MET"
    CYCLIC_DEPENDENCY = "CYCLIC_DEPENDENCY"
    HAS_DEPENDENTS = "HAS_DEPENDENTS"
    INVALID_RANGE = "INVALID_RANGE"
    NO_SLOTS_AVAILABLE = "NO_SLOTS_AVAILABLE"
    STORE_ERROR = "STORE_ERROR"


class SchedulingError(Exception):
    """
    Business-rule violation with a machine-readable code.

    Args:
        code: ErrorCode classifying the failure
        message: Human-readable message
        details: Optional extra context (offending ids, valid transitions, ...)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def task_not_found(task_id: str) -> SchedulingError:
    return SchedulingError(
        ErrorCode.TASK_NOT_FOUND,
        f"Task {task_id} not found",
        {"task_id": task_id},
    )


def validation_error(message: str, errors: list[str] | None = None) -> SchedulingError:
    return SchedulingError(
        ErrorCode.VALIDATION_ERROR,
        message,
        {"errors": errors} if errors else None,
    )
