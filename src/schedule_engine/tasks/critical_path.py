# src/schedule_engine/tasks/critical_path.py

from __future__ import annotations

"""
Critical path method (CPM) over one project's tasks.

Forward pass:
- worklist seeded with tasks that have no in-project dependencies
- a root starts at its start_date (or "now" when it has none)
- a dependent cannot start before the latest finish of its predecessors
- a task joins the worklist once all of its predecessors are done, which makes
  the worklist order a topological order without a separate sort step

Backward pass:
- walks the forward order in reverse
- tasks nothing depends on finish at the project finish (max earliest finish)
- every other task must finish before the earliest latest-start of its dependents

Slack is counted in whole days and never negative; zero slack means critical.
"""

import logging
import math
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from ..core.ports import DurationEstimator
from .task_models import Task

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(slots=True, frozen=True)
class CriticalPathItem:
    task: Task
    earliest_start: datetime
    earliest_finish: datetime
    latest_start: datetime
    latest_finish: datetime
    slack: int  # whole days
    is_critical: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "earliest_start": self.earliest_start.isoformat(),
            "earliest_finish": self.earliest_finish.isoformat(),
            "latest_start": self.latest_start.isoformat(),
            "latest_finish": self.latest_finish.isoformat(),
            "slack": self.slack,
            "is_critical": self.is_critical,
        }


class WorkdayDurationEstimator:
    """
    Default estimator: estimated hours rounded up to whole working days.

    Tasks without an estimate (or with 0 hours) take default_days.
    """

    def __init__(self, *, hours_per_day: float = 8.0, default_days: int = 1) -> None:
        if hours_per_day <= 0:
            raise ValueError("hours_per_day must be positive")
        if default_days < 1:
            raise ValueError("default_days must be at least 1")
        self.hours_per_day = float(hours_per_day)
        self.default_days = int(default_days)

    def __call__(self, task: Task) -> timedelta:
        if task.estimated_hours:
            return timedelta(days=math.ceil(task.estimated_hours / self.hours_per_day))
        return timedelta(days=self.default_days)


def compute_critical_path(
    tasks: list[Task],
    predecessors: Mapping[str, list[str]],
    *,
    estimate: DurationEstimator,
    now: datetime,
) -> list[CriticalPathItem]:
    """
    Run both CPM passes.

    Args:
        tasks: tasks of one project
        predecessors: task id -> ids it depends on; ids outside `tasks` are ignored
        estimate: duration of each task
        now: start instant for roots without a start_date

    Returns items sorted critical-first, then by earliest start.
    """
    if not tasks:
        return []

    by_id = {t.id: t for t in tasks}
    duration = {t.id: estimate(t) for t in tasks}

    preds: dict[str, list[str]] = {}
    succs: dict[str, list[str]] = {tid: [] for tid in by_id}
    for tid in by_id:
        inside = [p for p in dict.fromkeys(predecessors.get(tid, [])) if p in by_id and p != tid]
        preds[tid] = inside
        for p in inside:
            succs[p].append(tid)

    # ---- forward pass ----
    remaining = {tid: len(preds[tid]) for tid in by_id}
    earliest_start: dict[str, datetime] = {}
    earliest_finish: dict[str, datetime] = {}

    worklist: deque[str] = deque()
    for t in tasks:
        if remaining[t.id] == 0:
            earliest_start[t.id] = t.start_date or now
            worklist.append(t.id)

    order: list[str] = []
    while worklist:
        current = worklist.popleft()
        earliest_finish[current] = earliest_start[current] + duration[current]
        order.append(current)

        for dep in succs[current]:
            bound = earliest_finish[current]
            known = earliest_start.get(dep)
            if known is None or bound > known:
                earliest_start[dep] = bound
            remaining[dep] -= 1
            if remaining[dep] == 0:
                worklist.append(dep)

    if len(order) != len(by_id):
        skipped = sorted(set(by_id) - set(order))
        logger.warning("Critical path skipped %d task(s) on a cycle: %s", len(skipped), skipped)

    if not order:
        return []

    # ---- backward pass ----
    project_finish = max(earliest_finish.values())
    latest_start: dict[str, datetime] = {}
    latest_finish: dict[str, datetime] = {}

    for tid in reversed(order):
        downstream = [latest_start[s] for s in succs[tid] if s in latest_start]
        latest_finish[tid] = min(downstream) if downstream else project_finish
        latest_start[tid] = latest_finish[tid] - duration[tid]

    items: list[CriticalPathItem] = []
    for tid in order:
        slack = max(0, (latest_start[tid] - earliest_start[tid]) // ONE_DAY)
        items.append(
            CriticalPathItem(
                task=by_id[tid],
                earliest_start=earliest_start[tid],
                earliest_finish=earliest_finish[tid],
                latest_start=latest_start[tid],
                latest_finish=latest_finish[tid],
                slack=slack,
                is_critical=slack == 0,
            )
        )

    items.sort(key=lambda item: (not item.is_critical, item.earliest_start))
    return items
