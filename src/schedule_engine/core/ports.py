# src/schedule_engine/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the services.

Services depend on Protocols instead of concrete implementations.
This keeps storage swappable (relational, document, in-memory) and makes testing easier.

Store contract:
- not-found is signalled by None / False / empty lists, never by raising;
- delete() cascades every dependency edge touching the task;
- add_dependency() must not persist an edge that closes a cycle. A store that
  can be mutated concurrently has to make the check and the insert atomic
  (the in-memory store does this under a lock and returns None).
"""

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any, Protocol

from ..tasks.task_models import (
    CreateTask,
    QueryParams,
    Task,
    TaskDependency,
    TaskFilters,
    TaskPage,
)

Clock = Callable[[], datetime]
# Returns the current instant; must be timezone-aware.


class DurationEstimator(Protocol):
    """How long a task takes on the critical path."""

    def __call__(self, task: Task) -> timedelta: ...


class TaskRepo(Protocol):
    # Queries
    def find_all(self, params: QueryParams | None = None) -> TaskPage: ...
    def find_by_id(self, task_id: str) -> Task | None: ...
    def find_by_project_id(self, project_id: str) -> list[Task]: ...
    def find_by_assignee(self, assignee_id: str) -> list[Task]: ...
    def find_overdue(self, now: datetime | None = None) -> list[Task]: ...
    def find_by_date_range(
            self,
            start: datetime,
            end: datetime,
            filters: TaskFilters | None = None,
    ) -> list[Task]: ...
    def find_overlapping(
            self,
            start: datetime,
            end: datetime,
            filters: TaskFilters | None = None,
    ) -> list[Task]: ...
    def exists(self, task_id: str) -> bool: ...

    # Mutations
    def create(self, data: CreateTask) -> Task: ...
    def update(self, task_id: str, changes: Mapping[str, Any]) -> Task | None: ...
    def delete(self, task_id: str) -> bool: ...
    def bulk_update(self, task_ids: list[str], changes: Mapping[str, Any]) -> list[Task]: ...

    # Dependency graph
    def add_dependency(self, task_id: str, depends_on_task_id: str) -> TaskDependency | None: ...
    def remove_dependency(self, task_id: str, depends_on_task_id: str) -> bool: ...
    def get_dependencies(self, task_id: str) -> list[TaskDependency]: ...
    def get_dependents(self, task_id: str) -> list[TaskDependency]: ...
    def has_cyclic_dependency(self, task_id: str, depends_on_task_id: str) -> bool: ...
