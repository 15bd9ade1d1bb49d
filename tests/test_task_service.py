# tests/test_task_service.py

from __future__ import annotations

from datetime import datetime

from schedule_engine.config import Settings
from schedule_engine.core.errors import ErrorCode, SchedulingError
from schedule_engine.tasks.task_models import (
    CreateTask,
    QueryParams,
    TaskFilters,
    TaskPriority,
    TaskSortField,
    TaskStatus,
)
from schedule_engine.tasks.task_service import TaskService
from schedule_engine.tasks.task_store import InMemoryTaskStore

from .fakes import ExplodingStore, new_task, utc


def test_create_validates_and_normalizes(tasks: TaskService) -> None:
    res = tasks.create(
        CreateTask(project_id=" p1 ", title="  Pour footing  ", priority="HIGH", assigned_to="john")
    )
    assert res.success
    task = res.data
    assert task.title == "Pour footing"
    assert task.project_id == "p1"
    assert task.priority == TaskPriority.HIGH
    assert task.status == TaskStatus.NOT_STARTED


def test_create_reports_every_validation_problem(tasks: TaskService) -> None:
    res = tasks.create(
        CreateTask(
            project_id="",
            title="x" * 201,
            priority="someday",
            start_date=utc(2024, 2, 16),
            due_date=utc(2024, 2, 15),
            estimated_hours=-1,
        )
    )
    assert res.code == ErrorCode.VALIDATION_ERROR
    errors = res.error.details["errors"]
    assert "project_id is required" in errors
    assert any("title" in e for e in errors)
    assert any("priority" in e for e in errors)
    assert "start_date must not be after due_date" in errors
    assert "estimated_hours must be non-negative" in errors


def test_create_rejects_naive_datetimes(tasks: TaskService) -> None:
    res = tasks.create(new_task("naive", due=datetime(2024, 2, 15, 10)))
    assert res.code == ErrorCode.VALIDATION_ERROR
    assert "due_date must be timezone-aware" in res.error.details["errors"]


def test_create_with_dependencies_persists_edges(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B", dependencies=[a.id])).data

    assert b.dependencies == [a.id]
    assert [e.task_id for e in store.get_dependents(a.id)] == [b.id]


def test_create_with_unknown_dependency_fails_without_creating(tasks: TaskService, store: InMemoryTaskStore) -> None:
    res = tasks.create(new_task("B", dependencies=["ghost"]))
    assert res.code == ErrorCode.TASK_NOT_FOUND
    assert store.count_tasks() == 0


def test_get_by_id_not_found(tasks: TaskService) -> None:
    res = tasks.get_by_id("missing")
    assert not res.success
    assert res.code == ErrorCode.TASK_NOT_FOUND
    assert "missing" in res.error.message


def test_update_fields_and_guarded_fields(tasks: TaskService) -> None:
    task = tasks.create(new_task("A", start=utc(2024, 2, 15, 9), due=utc(2024, 2, 15, 12))).data

    res = tasks.update(task.id, {"title": "A2", "priority": "urgent", "assigned_to": "jane"})
    assert res.success
    assert res.data.title == "A2"
    assert res.data.priority == TaskPriority.URGENT
    assert res.data.assigned_to == "jane"

    bad = tasks.update(task.id, {"status": "completed"})
    assert bad.code == ErrorCode.VALIDATION_ERROR

    # Moving only the due date before the stored start is caught too.
    bad_window = tasks.update(task.id, {"due_date": utc(2024, 2, 15, 8)})
    assert bad_window.code == ErrorCode.VALIDATION_ERROR

    assert tasks.update("missing", {"title": "x"}).code == ErrorCode.TASK_NOT_FOUND


def test_delete_refused_while_depended_upon(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B", dependencies=[a.id])).data

    res = tasks.delete(a.id)
    assert res.code == ErrorCode.HAS_DEPENDENTS
    assert res.error.details["dependents"] == [b.id]
    assert store.exists(a.id)

    # Deleting the dependent is fine and cascades its outgoing edge.
    assert tasks.delete(b.id).success
    assert store.get_dependents(a.id) == []
    assert tasks.delete(a.id).success
    assert tasks.delete(a.id).code == ErrorCode.TASK_NOT_FOUND


def test_dependent_cannot_start_until_dependency_completed(tasks: TaskService) -> None:
    a = tasks.create(new_task("Task A")).data
    b = tasks.create(new_task("Task B", dependencies=[a.id])).data

    assert tasks.can_start_task(b.id).data is False
    res = tasks.update_task_status(b.id, TaskStatus.IN_PROGRESS)
    assert res.code == ErrorCode.DEPENDENCIES_NOT_MET

    assert tasks.update_task_status(a.id, TaskStatus.IN_PROGRESS).success
    assert tasks.can_start_task(b.id).data is False
    assert tasks.update_task_status(a.id, TaskStatus.COMPLETED).success

    assert tasks.can_start_task(b.id).data is True
    res = tasks.update_task_status(b.id, TaskStatus.IN_PROGRESS)
    assert res.success
    assert res.data.status == TaskStatus.IN_PROGRESS


def test_can_start_requires_every_direct_dependency(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B")).data
    c = tasks.create(new_task("C", dependencies=[a.id, b.id])).data

    store.update(a.id, {"status": TaskStatus.COMPLETED})
    assert tasks.can_start_task(c.id).data is False

    store.update(b.id, {"status": TaskStatus.COMPLETED})
    assert tasks.can_start_task(c.id).data is True

    assert tasks.can_start_task("missing").code == ErrorCode.TASK_NOT_FOUND


def test_bulk_update_is_all_or_nothing(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B")).data
    c = tasks.create(new_task("C")).data
    store.update(c.id, {"status": TaskStatus.COMPLETED})

    res = tasks.bulk_update_status([a.id, b.id, c.id], TaskStatus.CANCELLED)
    assert res.code == ErrorCode.INVALID_TRANSITION
    assert c.id in res.error.message
    assert store.find_by_id(a.id).status == TaskStatus.NOT_STARTED
    assert store.find_by_id(b.id).status == TaskStatus.NOT_STARTED

    ok = tasks.bulk_update_status([a.id, b.id], TaskStatus.CANCELLED)
    assert ok.success
    assert {t.status for t in ok.data} == {TaskStatus.CANCELLED}


def test_bulk_start_checks_dependencies_before_mutating(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B", dependencies=[a.id])).data

    res = tasks.bulk_update_status([a.id, b.id], TaskStatus.IN_PROGRESS)
    assert res.code == ErrorCode.DEPENDENCIES_NOT_MET
    assert store.find_by_id(a.id).status == TaskStatus.NOT_STARTED

    assert tasks.bulk_update_status([a.id, "missing"], "blocked").code == ErrorCode.TASK_NOT_FOUND
    assert store.find_by_id(a.id).status == TaskStatus.NOT_STARTED


def test_reorder_persists_sort_order(tasks: TaskService) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B")).data
    c = tasks.create(new_task("C")).data
    other = tasks.create(new_task("X", project_id="p2")).data

    res = tasks.reorder_tasks("p1", [c.id, a.id, b.id])
    assert res.success
    assert [t.id for t in res.data] == [c.id, a.id, b.id]
    assert [t.sort_order for t in res.data] == [0, 1, 2]

    listed = tasks.list(QueryParams(filters=TaskFilters(project_id="p1"), sort_by=TaskSortField.SORT_ORDER))
    assert [t.id for t in listed.data] == [c.id, a.id, b.id]

    bad = tasks.reorder_tasks("p1", [a.id, other.id])
    assert bad.code == ErrorCode.VALIDATION_ERROR
    assert other.id in bad.error.message


def test_list_returns_pagination_meta(tasks: TaskService, settings: Settings) -> None:
    for i in range(5):
        tasks.create(new_task(f"T{i}"))

    res = tasks.list(QueryParams(sort_by=TaskSortField.TITLE, page=2, page_size=2))
    assert res.success
    assert [t.title for t in res.data] == ["T2", "T3"]
    assert res.meta.total == 5
    assert res.meta.total_pages == 3
    assert res.meta.has_next and res.meta.has_previous

    default = tasks.list()
    assert default.meta.page_size == settings.default_page_size
    assert len(default.data) == 5

    assert tasks.list(QueryParams(page=0, page_size=10)).success  # page 0 falls back to 1


def test_overdue_tasks_with_filters(tasks: TaskService) -> None:
    tasks.create(new_task("late p1", due=utc(2024, 2, 1), assigned_to="john"))
    tasks.create(new_task("late p2", project_id="p2", due=utc(2024, 2, 1)))
    tasks.create(new_task("future", due=utc(2024, 3, 1)))

    assert len(tasks.get_overdue_tasks().data) == 2
    assert [t.title for t in tasks.get_overdue_tasks(project_id="p1").data] == ["late p1"]
    assert tasks.get_overdue_tasks(assigned_to="jane").data == []


def test_task_with_dependencies_resolves_both_directions(tasks: TaskService) -> None:
    a = tasks.create(new_task("A")).data
    b = tasks.create(new_task("B", dependencies=[a.id])).data
    c = tasks.create(new_task("C", dependencies=[b.id])).data

    view = tasks.get_task_with_dependencies(b.id).data
    assert [t.id for t in view.dependency_tasks] == [a.id]
    assert [t.id for t in view.blocked_by] == [c.id]


def test_store_failures_become_store_error(settings: Settings) -> None:
    service = TaskService(ExplodingStore(), settings=settings)

    res = service.get_by_id("t1")
    assert not res.success
    assert res.code == ErrorCode.STORE_ERROR
    assert "store unavailable" in res.error.message


def test_unwrap_raises_scheduling_error(tasks: TaskService) -> None:
    res = tasks.get_by_id("missing")
    try:
        res.unwrap()
    except SchedulingError as err:
        assert err.code == ErrorCode.TASK_NOT_FOUND
        assert err.to_dict()["code"] == "TASK_NOT_FOUND"
    else:
        raise AssertionError("unwrap() should raise for a failed result")


def test_lookups_by_project_and_assignee(tasks: TaskService) -> None:
    tasks.create(new_task("A", assigned_to="john"))
    tasks.create(new_task("B", assigned_to="jane"))
    tasks.create(new_task("C", project_id="p2", assigned_to="john"))

    assert {t.title for t in tasks.get_tasks_by_project("p1").data} == {"A", "B"}
    assert {t.title for t in tasks.get_tasks_by_assignee("john").data} == {"A", "C"}
    assert tasks.get_tasks_by_project("p9").data == []


def test_initial_status_respects_dependencies(tasks: TaskService, store: InMemoryTaskStore) -> None:
    a = tasks.create(new_task("A")).data

    for status in ("in-progress", "completed"):
        data = new_task("B", dependencies=[a.id])
        data.status = status
        res = tasks.create(data)
        assert res.code == ErrorCode.DEPENDENCIES_NOT_MET
        assert res.error.details["pending"] == [a.id]
    assert store.count_tasks() == 1

    blocked = new_task("B", dependencies=[a.id])
    blocked.status = TaskStatus.BLOCKED
    assert tasks.create(blocked).success

    store.update(a.id, {"status": TaskStatus.COMPLETED})
    started = new_task("C", dependencies=[a.id])
    started.status = TaskStatus.IN_PROGRESS
    assert tasks.create(started).data.status == TaskStatus.IN_PROGRESS
