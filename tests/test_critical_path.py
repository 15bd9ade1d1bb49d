# tests/test_critical_path.py

from __future__ import annotations

from datetime import timedelta

from schedule_engine.config import Settings
from schedule_engine.tasks.critical_path import WorkdayDurationEstimator, compute_critical_path
from schedule_engine.tasks.task_models import Task, TaskPriority, TaskStatus
from schedule_engine.tasks.task_service import TaskService
from schedule_engine.tasks.task_store import InMemoryTaskStore

from .fakes import FixedClock, new_task, utc


def _build_project(tasks: TaskService) -> dict[str, str]:
    """
    A(2d) -> B(1d) -> D(1d)
      \\-> C(3d) ----^
    E(1d) stands alone.
    """
    a = tasks.create(new_task("A", start=utc(2024, 2, 1), hours=16)).data
    b = tasks.create(new_task("B", hours=8, dependencies=[a.id])).data
    c = tasks.create(new_task("C", hours=24, dependencies=[a.id])).data
    d = tasks.create(new_task("D", dependencies=[b.id, c.id])).data
    e = tasks.create(new_task("E", start=utc(2024, 2, 1), hours=8)).data
    return {"A": a.id, "B": b.id, "C": c.id, "D": d.id, "E": e.id}


def test_forward_and_backward_pass(tasks: TaskService) -> None:
    ids = _build_project(tasks)
    res = tasks.get_critical_path("p1")
    assert res.success

    by_title = {item.task.title: item for item in res.data}

    assert by_title["A"].earliest_start == utc(2024, 2, 1)
    assert by_title["A"].earliest_finish == utc(2024, 2, 3)
    assert by_title["B"].earliest_start == utc(2024, 2, 3)
    assert by_title["C"].earliest_finish == utc(2024, 2, 6)
    # D waits for the later of its two predecessors.
    assert by_title["D"].earliest_start == utc(2024, 2, 6)
    assert by_title["D"].latest_finish == utc(2024, 2, 7)

    assert by_title["B"].latest_finish == utc(2024, 2, 6)
    assert by_title["B"].latest_start == utc(2024, 2, 5)
    assert by_title["A"].latest_finish == utc(2024, 2, 3)

    assert {t: i.slack for t, i in by_title.items()} == {"A": 0, "B": 2, "C": 0, "D": 0, "E": 5}
    assert {t for t, i in by_title.items() if i.is_critical} == {"A", "C", "D"}
    assert all(i.slack >= 0 for i in res.data)

    # Critical first by earliest start, then the rest.
    assert [i.task.id for i in res.data] == [ids["A"], ids["C"], ids["D"], ids["E"], ids["B"]]


def test_roots_without_start_begin_now(tasks: TaskService, clock: FixedClock) -> None:
    tasks.create(new_task("solo"))
    item = tasks.get_critical_path("p1").data[0]

    assert item.earliest_start == clock.now
    assert item.earliest_finish == clock.now + timedelta(days=1)
    assert item.is_critical


def test_empty_project(tasks: TaskService) -> None:
    res = tasks.get_critical_path("nothing-here")
    assert res.success
    assert res.data == []


def test_estimator_is_pluggable(settings: Settings, store: InMemoryTaskStore, clock: FixedClock) -> None:
    service = TaskService(store, settings=settings, clock=clock, estimate=lambda task: timedelta(days=3))
    a = service.create(new_task("A", start=utc(2024, 2, 1), hours=1)).data
    service.create(new_task("B", dependencies=[a.id]))

    items = {i.task.title: i for i in service.get_critical_path("p1").data}
    assert items["B"].earliest_start == utc(2024, 2, 4)
    assert items["B"].earliest_finish == utc(2024, 2, 7)


def test_dependencies_outside_the_project_are_ignored(tasks: TaskService) -> None:
    outside = tasks.create(new_task("elsewhere", project_id="p2", start=utc(2024, 1, 1))).data
    inside = tasks.create(new_task("inside", start=utc(2024, 2, 1), dependencies=[outside.id])).data

    items = tasks.get_critical_path("p1").data
    assert [i.task.id for i in items] == [inside.id]
    assert items[0].earliest_start == utc(2024, 2, 1)


def test_default_estimator_rounds_up_to_working_days() -> None:
    estimate = WorkdayDurationEstimator(hours_per_day=8, default_days=1)
    base = dict(project_id="p", title="t")

    def task(hours: float | None) -> Task:
        return Task(
            id="t",
            status=TaskStatus.NOT_STARTED,
            priority=TaskPriority.LOW,
            created_at=utc(2024, 1, 1),
            updated_at=utc(2024, 1, 1),
            estimated_hours=hours,
            **base,
        )

    assert estimate(task(None)) == timedelta(days=1)
    assert estimate(task(0)) == timedelta(days=1)
    assert estimate(task(1)) == timedelta(days=1)
    assert estimate(task(9)) == timedelta(days=2)
    assert estimate(task(16)) == timedelta(days=2)


def test_compute_skips_tasks_on_a_cycle() -> None:
    def task(tid: str) -> Task:
        return Task(
            id=tid,
            project_id="p",
            title=tid,
            status=TaskStatus.NOT_STARTED,
            priority=TaskPriority.LOW,
            created_at=utc(2024, 1, 1),
            updated_at=utc(2024, 1, 1),
        )

    items = compute_critical_path(
        [task("x"), task("y"), task("z")],
        {"y": ["z"], "z": ["y"]},
        estimate=WorkdayDurationEstimator(),
        now=utc(2024, 2, 1),
    )
    assert [i.task.id for i in items] == ["x"]
