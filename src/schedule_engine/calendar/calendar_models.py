# src/schedule_engine/calendar/calendar_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..tasks.task_models import Task


class ConflictType(StrEnum):
    ASSIGNEE_OVERLAP = "assignee-overlap"
    RESOURCE_CONFLICT = "resource-conflict"
    TIME_OVERLAP = "time-overlap"


@dataclass(slots=True, frozen=True)
class ProjectSummary:
    id: str
    name: str
    status: str = "active"


@dataclass(slots=True, frozen=True)
class ScheduleEntry:
    task: Task
    project: ProjectSummary
    is_overdue: bool
    days_until_due: int | None  # signed; negative once the due date has passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "project": {"id": self.project.id, "name": self.project.name, "status": self.project.status},
            "is_overdue": self.is_overdue,
            "days_until_due": self.days_until_due,
        }


@dataclass(slots=True, frozen=True)
class AvailabilitySlot:
    start: datetime
    end: datetime
    is_available: bool
    tasks: list[Task] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class SuggestedSlot:
    start_date: datetime
    end_date: datetime
    confidence: int  # 0-100, a ranking heuristic
    reason: str


@dataclass(slots=True)
class ConflictCandidate:
    """The task being planned; task_id excludes the task itself when re-checking an existing one."""

    project_id: str
    start_date: datetime | None = None
    due_date: datetime | None = None
    assigned_to: str | None = None
    task_id: str | None = None


@dataclass(slots=True, frozen=True)
class SchedulingConflict:
    conflict_type: ConflictType
    conflicting_task: Task
    reason: str
