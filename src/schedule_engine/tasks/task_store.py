# src/schedule_engine/tasks/task_store.py

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import fields, replace
from datetime import UTC, datetime
from typing import Any

from ..core.ports import Clock
from .task_models import (
    CreateTask,
    QueryParams,
    SortOrder,
    Task,
    TaskDependency,
    TaskFilters,
    TaskPage,
    TaskPriority,
    TaskSortField,
    TaskStatus,
)

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    f.name for f in fields(Task) if f.name not in {"id", "created_at", "updated_at", "dependencies"}
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _copy(task: Task) -> Task:
    return replace(task, dependencies=list(task.dependencies))


def _as_list(value: Any) -> list[Any] | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class InMemoryTaskStore:
    """
    In-memory task store.

    Layout:
    - tasks: id -> Task
    - edges: edge id -> TaskDependency (the arena)
    - forward: task id -> edge ids where the task is the source ("depends on")
    - backward: task id -> edge ids where the task is the target ("depended on by")

    Task.dependencies mirrors the forward map in insertion order so a task can be
    serialized on its own.

    Thread-safety:
    - every mutation and every graph read runs under one re-entrant lock
    - add_dependency re-checks reachability under the lock, so two callers
      racing on a stale graph cannot jointly create a cycle

    Not-found is reported as None / False / [], never raised.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or _utcnow
        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self._edges: dict[str, TaskDependency] = {}
        self._forward: dict[str, list[str]] = {}
        self._backward: dict[str, list[str]] = {}
        logger.info("InMemoryTaskStore ready")

    # ---- low-level helpers ----

    @staticmethod
    def _matches(task: Task, filters: TaskFilters | None, now: datetime) -> bool:
        if filters is None:
            return True

        if filters.project_id and task.project_id != filters.project_id:
            return False

        statuses = _as_list(filters.status)
        if statuses and task.status not in statuses:
            return False

        priorities = _as_list(filters.priority)
        if priorities and task.priority not in priorities:
            return False

        if filters.assigned_to and task.assigned_to != filters.assigned_to:
            return False

        if filters.due_date_from is not None and (
            task.due_date is None or task.due_date < filters.due_date_from
        ):
            return False

        if filters.due_date_to is not None and (
            task.due_date is None or task.due_date > filters.due_date_to
        ):
            return False

        if filters.overdue is not None:
            if task.due_date is None:
                return False
            if task.is_overdue(now) != filters.overdue:
                return False

        return True

    @staticmethod
    def _sort(tasks: list[Task], sort_by: TaskSortField, order: SortOrder) -> list[Task]:
        reverse = order == SortOrder.DESC

        # Optional fields: undated / unordered tasks always go last.
        if sort_by in (TaskSortField.DUE_DATE, TaskSortField.SORT_ORDER):
            attr = "due_date" if sort_by == TaskSortField.DUE_DATE else "sort_order"
            present = [t for t in tasks if getattr(t, attr) is not None]
            missing = [t for t in tasks if getattr(t, attr) is None]
            present.sort(key=lambda t: getattr(t, attr), reverse=reverse)
            return present + missing

        key_funcs = {
            TaskSortField.TITLE: lambda t: t.title.lower(),
            TaskSortField.STATUS: lambda t: t.status.value,
            TaskSortField.PRIORITY: lambda t: t.priority.rank,
            TaskSortField.CREATED_AT: lambda t: t.created_at,
            TaskSortField.UPDATED_AT: lambda t: t.updated_at,
        }
        return sorted(tasks, key=key_funcs[sort_by], reverse=reverse)

    def _edges_for(self, index: dict[str, list[str]], task_id: str) -> list[TaskDependency]:
        return [self._edges[eid] for eid in index.get(task_id, [])]

    def _find_edge(self, task_id: str, depends_on_task_id: str) -> TaskDependency | None:
        for edge in self._edges_for(self._forward, task_id):
            if edge.depends_on_task_id == depends_on_task_id:
                return edge
        return None

    def _drop_edge(self, edge: TaskDependency) -> None:
        self._edges.pop(edge.id, None)
        fwd = self._forward.get(edge.task_id, [])
        if edge.id in fwd:
            fwd.remove(edge.id)
        bwd = self._backward.get(edge.depends_on_task_id, [])
        if edge.id in bwd:
            bwd.remove(edge.id)

        source = self._tasks.get(edge.task_id)
        if source is not None and edge.depends_on_task_id in source.dependencies:
            source.dependencies.remove(edge.depends_on_task_id)

    def _reaches(self, start_id: str, target_id: str) -> bool:
        """Depth-first search along depends-on edges from start_id looking for target_id."""
        visited: set[str] = set()
        stack = [start_id]
        while stack:
            current = stack.pop()
            if current == target_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            for edge in self._edges_for(self._forward, current):
                stack.append(edge.depends_on_task_id)
        return False

    # ---- queries ----

    def count_tasks(self) -> int:
        with self._lock:
            return len(self._tasks)

    def find_all(self, params: QueryParams | None = None) -> TaskPage:
        params = params or QueryParams()
        now = self._clock()
        with self._lock:
            tasks = [_copy(t) for t in self._tasks.values() if self._matches(t, params.filters, now)]

        total = len(tasks)

        if params.sort_by is not None:
            tasks = self._sort(tasks, TaskSortField(params.sort_by), SortOrder(params.sort_order))

        if params.page and params.page_size:
            start = (params.page - 1) * params.page_size
            tasks = tasks[start:start + params.page_size]

        logger.debug("find_all total=%s returned=%s", total, len(tasks))
        return TaskPage(tasks=tasks, total=total)

    def find_by_id(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return _copy(task) if task is not None else None

    def find_by_project_id(self, project_id: str) -> list[Task]:
        with self._lock:
            return [_copy(t) for t in self._tasks.values() if t.project_id == project_id]

    def find_by_assignee(self, assignee_id: str) -> list[Task]:
        if not assignee_id:
            return []
        with self._lock:
            return [_copy(t) for t in self._tasks.values() if t.assigned_to == assignee_id]

    def find_overdue(self, now: datetime | None = None) -> list[Task]:
        """Tasks whose due date has passed and that are not completed."""
        now = now or self._clock()
        with self._lock:
            return [_copy(t) for t in self._tasks.values() if t.is_overdue(now)]

    def find_by_date_range(
        self,
        start: datetime,
        end: datetime,
        filters: TaskFilters | None = None,
    ) -> list[Task]:
        """Tasks with a due date inside [start, end] (inclusive), narrowed by filters."""
        now = self._clock()
        with self._lock:
            out = [
                _copy(t)
                for t in self._tasks.values()
                if t.due_date is not None
                and start <= t.due_date <= end
                and self._matches(t, filters, now)
            ]
        logger.debug("find_by_date_range start=%s end=%s found=%s", start, end, len(out))
        return out

    def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        filters: TaskFilters | None = None,
    ) -> list[Task]:
        """
        Tasks with both dates set whose [start_date, due_date] window touches [start, end].

        Closed-interval test: callers that need half-open semantics refine the result.
        """
        now = self._clock()
        with self._lock:
            out = [
                _copy(t)
                for t in self._tasks.values()
                if t.start_date is not None
                and t.due_date is not None
                and t.start_date <= end
                and t.due_date >= start
                and self._matches(t, filters, now)
            ]
        logger.debug("find_overlapping start=%s end=%s found=%s", start, end, len(out))
        return out

    def exists(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    # ---- mutations ----

    def create(self, data: CreateTask) -> Task:
        """
        Insert a task. Dependency ids in data are NOT turned into edges here;
        callers add edges with add_dependency() so every edge passes the cycle check.
        """
        now = self._clock()
        task = Task(
            id=_new_id("task"),
            project_id=data.project_id,
            title=data.title,
            description=data.description,
            status=TaskStatus(data.status),
            priority=TaskPriority(data.priority),
            assigned_to=data.assigned_to,
            start_date=data.start_date,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
            dependencies=[],
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._tasks[task.id] = task
        logger.debug("Task created id=%s project=%s status=%s", task.id, task.project_id, task.status.value)
        return _copy(task)

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Task | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated directly: {sorted(unknown)}")

        with self._lock:
            existing = self._tasks.get(task_id)
            if existing is None:
                return None
            updated = replace(existing, **dict(changes), updated_at=self._clock())
            self._tasks[task_id] = updated
            return _copy(updated)

    def bulk_update(self, task_ids: list[str], changes: Mapping[str, Any]) -> list[Task]:
        with self._lock:
            out: list[Task] = []
            for task_id in task_ids:
                task = self.update(task_id, changes)
                if task is not None:
                    out.append(task)
            return out

    def delete(self, task_id: str) -> bool:
        """Delete a task and every edge touching it."""
        with self._lock:
            if task_id not in self._tasks:
                return False

            touching = self._edges_for(self._forward, task_id) + self._edges_for(self._backward, task_id)
            for edge in touching:
                self._drop_edge(edge)

            self._forward.pop(task_id, None)
            self._backward.pop(task_id, None)
            del self._tasks[task_id]

        logger.debug("Task deleted id=%s cascaded_edges=%s", task_id, len(touching))
        return True

    # ---- dependency graph ----

    def add_dependency(self, task_id: str, depends_on_task_id: str) -> TaskDependency | None:
        """
        Persist task_id -> depends_on_task_id.

        Returns None (and stores nothing) if either task is missing or the edge
        would close a cycle. Adding an existing edge returns that edge.
        """
        with self._lock:
            if task_id not in self._tasks or depends_on_task_id not in self._tasks:
                return None

            existing = self._find_edge(task_id, depends_on_task_id)
            if existing is not None:
                return existing

            if self._reaches(depends_on_task_id, task_id):
                logger.warning(
                    "add_dependency refused (cycle) task=%s depends_on=%s",
                    task_id,
                    depends_on_task_id,
                )
                return None

            edge = TaskDependency(
                id=_new_id("dep"),
                task_id=task_id,
                depends_on_task_id=depends_on_task_id,
                created_at=self._clock(),
            )
            self._edges[edge.id] = edge
            self._forward.setdefault(task_id, []).append(edge.id)
            self._backward.setdefault(depends_on_task_id, []).append(edge.id)
            self._tasks[task_id].dependencies.append(depends_on_task_id)
            return edge

    def remove_dependency(self, task_id: str, depends_on_task_id: str) -> bool:
        with self._lock:
            edge = self._find_edge(task_id, depends_on_task_id)
            if edge is None:
                return False
            self._drop_edge(edge)
            return True

    def get_dependencies(self, task_id: str) -> list[TaskDependency]:
        """Edges where task_id is the source (what it depends on)."""
        with self._lock:
            return self._edges_for(self._forward, task_id)

    def get_dependents(self, task_id: str) -> list[TaskDependency]:
        """Edges where task_id is the target (what depends on it)."""
        with self._lock:
            return self._edges_for(self._backward, task_id)

    def has_cyclic_dependency(self, task_id: str, depends_on_task_id: str) -> bool:
        """True iff depends_on_task_id can already reach task_id (so the new edge would close a loop)."""
        with self._lock:
            return self._reaches(depends_on_task_id, task_id)

    def all_edges(self) -> Iterable[TaskDependency]:
        with self._lock:
            return list(self._edges.values())
