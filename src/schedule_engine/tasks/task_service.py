# src/schedule_engine/tasks/task_service.py

from __future__ import annotations

"""
Task service.

Business rules on top of a TaskRepo:
- validated create/update,
- the status state machine (task_transitions.py) plus the "dependencies
  completed" precondition for starting work,
- dependency edges with cycle prevention,
- critical path analysis (critical_path.py),
- all-or-nothing bulk status changes and project reordering.

Every public method returns a Result; nothing raises to the caller.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..config import Settings, get_settings
from ..core.errors import ErrorCode, SchedulingError, task_not_found, validation_error
from ..core.ports import Clock, DurationEstimator, TaskRepo
from ..core.results import PaginationMeta, Result, returns_result
from .critical_path import CriticalPathItem, WorkdayDurationEstimator, compute_critical_path
from .task_models import (
    CreateTask,
    QueryParams,
    Task,
    TaskFilters,
    TaskStatus,
    TaskWithDependencies,
)
from .task_transitions import check_transition
from .task_validation import validate_create, validate_update

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskService:
    def __init__(
        self,
        task_store: TaskRepo,
        *,
        settings: Settings | None = None,
        estimate: DurationEstimator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = task_store
        self._settings = settings or get_settings()
        self._estimate: DurationEstimator = estimate or WorkdayDurationEstimator(
            hours_per_day=self._settings.hours_per_day,
            default_days=self._settings.default_task_days,
        )
        self._clock: Clock = clock or _utcnow

    # ---- helpers ----

    def _require_task(self, task_id: str) -> Task:
        task = self._store.find_by_id(task_id)
        if task is None:
            raise task_not_found(task_id)
        return task

    @staticmethod
    def _parse_status(status: TaskStatus | str) -> TaskStatus:
        try:
            return TaskStatus.parse(status)
        except ValueError as e:
            raise validation_error(str(e), [str(e)]) from None

    def _dependencies_completed(self, task_id: str) -> bool:
        for edge in self._store.get_dependencies(task_id):
            upstream = self._store.find_by_id(edge.depends_on_task_id)
            if upstream is None or upstream.status != TaskStatus.COMPLETED:
                return False
        return True

    def _check_status_change(self, task: Task, target: TaskStatus) -> None:
        check_transition(task.status, target, task_id=task.id)
        if target == TaskStatus.IN_PROGRESS and not self._dependencies_completed(task.id):
            raise SchedulingError(
                ErrorCode.DEPENDENCIES_NOT_MET,
                f"Cannot start task {task.id}: dependencies not completed",
                {"task_id": task.id},
            )

    def _check_no_cycle(self, task_id: str, depends_on_task_id: str) -> None:
        if self._store.has_cyclic_dependency(task_id, depends_on_task_id):
            raise SchedulingError(
                ErrorCode.CYCLIC_DEPENDENCY,
                f"Adding dependency {task_id} -> {depends_on_task_id} would create a cycle",
                {"task_id": task_id, "depends_on_task_id": depends_on_task_id},
            )

    def _persist_edge(self, task_id: str, depends_on_task_id: str) -> None:
        # The store re-checks atomically; None here means another writer closed the loop first.
        if self._store.add_dependency(task_id, depends_on_task_id) is None:
            raise SchedulingError(
                ErrorCode.CYCLIC_DEPENDENCY,
                f"Adding dependency {task_id} -> {depends_on_task_id} would create a cycle",
                {"task_id": task_id, "depends_on_task_id": depends_on_task_id},
            )

    # ---- queries ----

    @returns_result("list tasks")
    def list(self, params: QueryParams | None = None) -> Result[list[Task]]:
        params = params or QueryParams()
        page = params.page or 1
        page_size = params.page_size or self._settings.default_page_size
        if page < 1 or page_size < 1:
            raise validation_error("page and page_size must be positive")

        query = QueryParams(
            filters=params.filters,
            sort_by=params.sort_by,
            sort_order=params.sort_order,
            page=page,
            page_size=page_size,
        )
        result = self._store.find_all(query)
        return Result.ok(result.tasks, PaginationMeta.calculate(result.total, page, page_size))

    @returns_result("fetch task")
    def get_by_id(self, task_id: str) -> Result[Task]:
        return Result.ok(self._require_task(task_id))

    @returns_result("fetch project tasks")
    def get_tasks_by_project(self, project_id: str) -> Result[list[Task]]:
        return Result.ok(self._store.find_by_project_id(project_id))

    @returns_result("fetch assignee tasks")
    def get_tasks_by_assignee(self, assignee_id: str) -> Result[list[Task]]:
        return Result.ok(self._store.find_by_assignee(assignee_id))

    @returns_result("fetch overdue tasks")
    def get_overdue_tasks(
        self,
        *,
        project_id: str | None = None,
        assigned_to: str | None = None,
    ) -> Result[list[Task]]:
        tasks = self._store.find_overdue(self._clock())
        if project_id:
            tasks = [t for t in tasks if t.project_id == project_id]
        if assigned_to:
            tasks = [t for t in tasks if t.assigned_to == assigned_to]
        return Result.ok(tasks)

    # ---- CRUD ----

    @returns_result("create task")
    def create(self, data: CreateTask) -> Result[Task]:
        clean = validate_create(data)

        missing = [d for d in clean.dependencies if not self._store.exists(d)]
        if missing:
            raise SchedulingError(
                ErrorCode.TASK_NOT_FOUND,
                f"Dependency task(s) not found: {', '.join(missing)}",
                {"missing": missing},
            )

        if clean.status in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED):
            pending: list[str] = []
            for dep_id in clean.dependencies:
                upstream = self._store.find_by_id(dep_id)
                if upstream is None or upstream.status != TaskStatus.COMPLETED:
                    pending.append(dep_id)
            if pending:
                raise SchedulingError(
                    ErrorCode.DEPENDENCIES_NOT_MET,
                    f"Cannot create task as {clean.status.value}: dependencies not completed",
                    {"status": clean.status.value, "pending": pending},
                )

        task = self._store.create(clean)
        # A brand-new task has no dependents, so none of these edges can close a cycle.
        for dep_id in clean.dependencies:
            self._persist_edge(task.id, dep_id)

        logger.info("Task created id=%s project=%s deps=%d", task.id, task.project_id, len(clean.dependencies))
        return Result.ok(self._require_task(task.id))

    @returns_result("update task")
    def update(self, task_id: str, changes: Mapping[str, Any]) -> Result[Task]:
        existing = self._require_task(task_id)
        clean = validate_update(changes, current_start=existing.start_date, current_due=existing.due_date)
        if not clean:
            return Result.ok(existing)

        updated = self._store.update(task_id, clean)
        if updated is None:
            raise task_not_found(task_id)
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(clean))
        return Result.ok(updated)

    @returns_result("delete task")
    def delete(self, task_id: str) -> Result[None]:
        if not self._store.exists(task_id):
            raise task_not_found(task_id)

        dependents = self._store.get_dependents(task_id)
        if dependents:
            logger.warning("Delete refused id=%s dependents=%d", task_id, len(dependents))
            raise SchedulingError(
                ErrorCode.HAS_DEPENDENTS,
                f"Cannot delete task: {len(dependents)} other task(s) depend on it",
                {"task_id": task_id, "dependents": [d.task_id for d in dependents]},
            )

        if not self._store.delete(task_id):
            raise task_not_found(task_id)
        logger.info("Task deleted id=%s", task_id)
        return Result.ok(None)

    # ---- status ----

    @returns_result("update task status")
    def update_task_status(self, task_id: str, status: TaskStatus | str) -> Result[Task]:
        target = self._parse_status(status)
        task = self._require_task(task_id)
        self._check_status_change(task, target)

        updated = self._store.update(task_id, {"status": target})
        if updated is None:
            raise task_not_found(task_id)
        logger.info("Task %s: %s -> %s", task_id, task.status.value, target.value)
        return Result.ok(updated)

    @returns_result("bulk update tasks")
    def bulk_update_status(self, task_ids: list[str], status: TaskStatus | str) -> Result[list[Task]]:
        """Validate every transition first; apply none of them if any one fails."""
        target = self._parse_status(status)
        ids = list(dict.fromkeys(task_ids))

        for task_id in ids:
            self._check_status_change(self._require_task(task_id), target)

        updated = self._store.bulk_update(ids, {"status": target})
        logger.info("Bulk status -> %s for %d task(s)", target.value, len(updated))
        return Result.ok(updated)

    @returns_result("reorder tasks")
    def reorder_tasks(self, project_id: str, task_ids: list[str]) -> Result[list[Task]]:
        """Persist sort_order = position for each id; ids must all belong to the project."""
        project_ids = {t.id for t in self._store.find_by_project_id(project_id)}
        for task_id in task_ids:
            if task_id not in project_ids:
                raise validation_error(
                    f"Task {task_id} does not belong to project {project_id}",
                    [f"task {task_id} is not in project {project_id}"],
                )
        if len(set(task_ids)) != len(task_ids):
            raise validation_error("Task ids must be unique", ["duplicate task ids"])

        ordered: list[Task] = []
        for position, task_id in enumerate(task_ids):
            task = self._store.update(task_id, {"sort_order": position})
            if task is not None:
                ordered.append(task)
        return Result.ok(ordered)

    # ---- dependencies ----

    @returns_result("add dependency")
    def add_dependency(self, task_id: str, depends_on_task_id: str) -> Result[None]:
        self._require_task(task_id)
        self._require_task(depends_on_task_id)
        self._check_no_cycle(task_id, depends_on_task_id)
        self._persist_edge(task_id, depends_on_task_id)
        logger.info("Dependency added %s -> %s", task_id, depends_on_task_id)
        return Result.ok(None)

    @returns_result("remove dependency")
    def remove_dependency(self, task_id: str, depends_on_task_id: str) -> Result[None]:
        if not self._store.remove_dependency(task_id, depends_on_task_id):
            raise SchedulingError(
                ErrorCode.DEPENDENCY_NOT_FOUND,
                "Dependency not found",
                {"task_id": task_id, "depends_on_task_id": depends_on_task_id},
            )
        logger.info("Dependency removed %s -> %s", task_id, depends_on_task_id)
        return Result.ok(None)

    @returns_result("update dependencies")
    def update_task_dependencies(self, task_id: str, dependencies: list[str]) -> Result[Task]:
        """
        Replace the dependency set of a task.

        Every new edge is validated before anything changes. The task's own
        outgoing edges cannot lie on a path back to it, so checking against the
        current graph is equivalent to checking against the replaced one.
        """
        self._require_task(task_id)
        wanted = list(dict.fromkeys(dependencies))

        for dep_id in wanted:
            self._require_task(dep_id)
            self._check_no_cycle(task_id, dep_id)

        current = [e.depends_on_task_id for e in self._store.get_dependencies(task_id)]
        for dep_id in current:
            if dep_id not in wanted:
                self._store.remove_dependency(task_id, dep_id)
        for dep_id in wanted:
            if dep_id not in current:
                self._persist_edge(task_id, dep_id)

        logger.info("Dependencies of %s set to %s", task_id, wanted)
        return Result.ok(self._require_task(task_id))

    @returns_result("get dependency chain")
    def get_dependency_chain(self, task_id: str) -> Result[list[str]]:
        """All upstream task ids (transitive), depth-first, excluding task_id itself."""
        self._require_task(task_id)

        chain: list[str] = []
        visited: set[str] = set()
        stack = [task_id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            if current != task_id:
                chain.append(current)
            for edge in self._store.get_dependencies(current):
                stack.append(edge.depends_on_task_id)

        return Result.ok(chain)

    @returns_result("check dependencies")
    def can_start_task(self, task_id: str) -> Result[bool]:
        self._require_task(task_id)
        return Result.ok(self._dependencies_completed(task_id))

    @returns_result("fetch task with dependencies")
    def get_task_with_dependencies(self, task_id: str) -> Result[TaskWithDependencies]:
        task = self._require_task(task_id)

        upstream = [self._store.find_by_id(e.depends_on_task_id) for e in self._store.get_dependencies(task_id)]
        downstream = [self._store.find_by_id(e.task_id) for e in self._store.get_dependents(task_id)]

        return Result.ok(
            TaskWithDependencies(
                task=task,
                dependency_tasks=[t for t in upstream if t is not None],
                blocked_by=[t for t in downstream if t is not None],
            )
        )

    # ---- analysis ----

    @returns_result("calculate critical path")
    def get_critical_path(self, project_id: str) -> Result[list[CriticalPathItem]]:
        tasks = self._store.find_by_project_id(project_id)
        if not tasks:
            return Result.ok([])

        predecessors = {
            t.id: [e.depends_on_task_id for e in self._store.get_dependencies(t.id)]
            for t in tasks
        }
        items = compute_critical_path(
            tasks,
            predecessors,
            estimate=self._estimate,
            now=self._clock(),
        )
        logger.debug(
            "Critical path project=%s tasks=%d critical=%d",
            project_id,
            len(items),
            sum(1 for i in items if i.is_critical),
        )
        return Result.ok(items)
