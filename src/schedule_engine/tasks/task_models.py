# src/schedule_engine/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Allowed moves between statuses live in task_transitions.py, not here.
    """

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, raw: str | TaskStatus) -> TaskStatus:
        """Accept enum members, values ("in-progress") and names ("IN_PROGRESS")."""
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip()
        try:
            return cls(text.lower())
        except ValueError:
            pass
        try:
            return cls[text.upper().replace("-", "_")]
        except KeyError:
            raise ValueError(f"Unknown task status: {raw!r}") from None


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class TaskSortField(StrEnum):
    TITLE = "title"
    STATUS = "status"
    PRIORITY = "priority"
    DUE_DATE = "due_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    SORT_ORDER = "sort_order"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True)
class Task:
    id: str
    project_id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_at: datetime
    updated_at: datetime

    description: str | None = None
    assigned_to: str | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = None

    # Depends-on ids in insertion order; mirrored from the store's edge set.
    dependencies: list[str] = field(default_factory=list)

    # Persisted display order within the project (set by reorder_tasks).
    sort_order: int | None = None

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.due_date is not None
            and self.due_date < now
            and self.status != TaskStatus.COMPLETED
        )

    def to_dict(self) -> dict[str, Any]:
        def iso(d: datetime | None) -> str | None:
            return d.isoformat() if d is not None else None

        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assigned_to": self.assigned_to,
            "start_date": iso(self.start_date),
            "due_date": iso(self.due_date),
            "estimated_hours": self.estimated_hours,
            "dependencies": list(self.dependencies),
            "sort_order": self.sort_order,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


@dataclass(slots=True, frozen=True)
class TaskDependency:
    """Directed edge: task_id depends on depends_on_task_id."""

    id: str
    task_id: str
    depends_on_task_id: str
    created_at: datetime


@dataclass(slots=True)
class CreateTask:
    project_id: str
    title: str
    description: str | None = None
    status: TaskStatus | str = TaskStatus.NOT_STARTED
    priority: TaskPriority | str = TaskPriority.MEDIUM
    assigned_to: str | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: float | None = None
    dependencies: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TaskFilters:
    project_id: str | None = None
    status: TaskStatus | list[TaskStatus] | None = None
    priority: TaskPriority | list[TaskPriority] | None = None
    assigned_to: str | None = None
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    overdue: bool | None = None


@dataclass(slots=True)
class QueryParams:
    filters: TaskFilters | None = None
    sort_by: TaskSortField | None = None
    sort_order: SortOrder = SortOrder.ASC
    page: int | None = None
    page_size: int | None = None


@dataclass(slots=True)
class TaskPage:
    tasks: list[Task]
    total: int


@dataclass(slots=True)
class TaskWithDependencies:
    task: Task
    dependency_tasks: list[Task]
    blocked_by: list[Task]
