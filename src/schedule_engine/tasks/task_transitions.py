# src/schedule_engine/tasks/task_transitions.py

"""Task status state machine: one lookup table, no per-state classes."""

from __future__ import annotations

from types import MappingProxyType

from ..core.errors import ErrorCode, SchedulingError
from .task_models import TaskStatus

VALID_TRANSITIONS: MappingProxyType[TaskStatus, tuple[TaskStatus, ...]] = MappingProxyType(
    {
        TaskStatus.NOT_STARTED: (TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED, TaskStatus.CANCELLED),
        TaskStatus.IN_PROGRESS: (TaskStatus.COMPLETED, TaskStatus.BLOCKED),
        TaskStatus.BLOCKED: (TaskStatus.NOT_STARTED, TaskStatus.IN_PROGRESS),
        TaskStatus.COMPLETED: (TaskStatus.IN_PROGRESS,),  # reopen
        TaskStatus.CANCELLED: (TaskStatus.NOT_STARTED,),  # restart
    }
)


def valid_targets(current: TaskStatus) -> tuple[TaskStatus, ...]:
    return VALID_TRANSITIONS.get(current, ())


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in valid_targets(current)


def check_transition(current: TaskStatus, target: TaskStatus, *, task_id: str | None = None) -> None:
    """Raise INVALID_TRANSITION (listing the allowed targets) unless current -> target is in the table."""
    if can_transition(current, target):
        return

    allowed = [s.value for s in valid_targets(current)]
    prefix = f"Task {task_id} cannot" if task_id else "Cannot"
    raise SchedulingError(
        ErrorCode.INVALID_TRANSITION,
        f"{prefix} transition from {current.value} to {target.value}. "
        f"Valid transitions: {', '.join(allowed) or 'none'}",
        {
            "task_id": task_id,
            "from": current.value,
            "to": target.value,
            "valid_transitions": allowed,
        },
    )
