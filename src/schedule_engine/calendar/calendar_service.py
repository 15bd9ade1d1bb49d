# src/schedule_engine/calendar/calendar_service.py

from __future__ import annotations

"""
Calendar service.

Read-mostly views over the task store:
- schedule entries for a due-date range,
- ten one-hour availability slots per workday (08:00-18:00),
- conflict detection for a task being planned,
- next-available-slot suggestions with a confidence score.

Availability slots are compared half-open: [start, end). A task that starts
exactly when a slot ends does not occupy that slot; a zero-length task occupies
the slot it starts in. Conflict detection compares closed windows.
"""

import logging
import math
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ..config import Settings, get_settings
from ..core.errors import ErrorCode, SchedulingError, validation_error
from ..core.ports import Clock, TaskRepo
from ..core.results import Result, returns_result
from ..tasks.task_models import Task, TaskFilters
from ..tasks.task_validation import require_aware
from .calendar_models import (
    AvailabilitySlot,
    ConflictCandidate,
    ConflictType,
    ProjectSummary,
    ScheduleEntry,
    SchedulingConflict,
    SuggestedSlot,
)

logger = logging.getLogger(__name__)

WORKDAY_START_HOUR = 8
WORKDAY_END_HOUR = 18

ProjectLookup = Callable[[str], ProjectSummary | None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _default_project(project_id: str) -> ProjectSummary:
    return ProjectSummary(id=project_id, name=f"Project {project_id}", status="active")


def windows_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open overlap of [a_start, a_end) and [b_start, b_end); a window starting inside the other counts."""
    if a_start < b_end and a_end > b_start:
        return True
    return b_start <= a_start < b_end or a_start <= b_start < a_end


def _due_sort_key(task: Task) -> tuple[int, datetime]:
    if task.due_date is None:
        return (1, datetime.max.replace(tzinfo=UTC))
    return (0, task.due_date)


class CalendarService:
    def __init__(
        self,
        task_store: TaskRepo,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
        project_lookup: ProjectLookup | None = None,
    ) -> None:
        self._store = task_store
        self._settings = settings or get_settings()
        self._tz: ZoneInfo = self._settings.tzinfo
        self._clock: Clock = clock or _utcnow
        self._project_lookup = project_lookup

    # ---- helpers ----

    def _local_date(self, value: date | datetime) -> date:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.date()
            return value.astimezone(self._tz).date()
        return value

    def _at(self, day: date, hour: int) -> datetime:
        return datetime.combine(day, time(hour), tzinfo=self._tz)

    def _day_bounds(self, day: date) -> tuple[datetime, datetime]:
        start = datetime.combine(day, time.min, tzinfo=self._tz)
        end = datetime.combine(day, time.max, tzinfo=self._tz)
        return start, end

    def _project(self, project_id: str) -> ProjectSummary:
        if self._project_lookup is not None:
            found = self._project_lookup(project_id)
            if found is not None:
                return found
        return _default_project(project_id)

    def _slots_for(self, day: date, assignee_id: str | None) -> list[AvailabilitySlot]:
        day_start = self._at(day, WORKDAY_START_HOUR)
        day_end = self._at(day, WORKDAY_END_HOUR)
        filters = TaskFilters(assigned_to=assignee_id) if assignee_id else None
        tasks = self._store.find_overlapping(day_start, day_end, filters)

        slots: list[AvailabilitySlot] = []
        for hour in range(WORKDAY_START_HOUR, WORKDAY_END_HOUR):
            slot_start = self._at(day, hour)
            slot_end = self._at(day, hour + 1)
            busy = [
                t
                for t in tasks
                if t.start_date is not None
                and t.due_date is not None
                and windows_overlap(t.start_date, t.due_date, slot_start, slot_end)
            ]
            slots.append(
                AvailabilitySlot(
                    start=slot_start,
                    end=slot_end,
                    is_available=not busy,
                    tasks=busy,
                )
            )
        return slots

    def _sorted_by_due(self, tasks: list[Task]) -> list[Task]:
        return sorted(tasks, key=_due_sort_key)

    # ---- schedule ----

    @returns_result("get schedule")
    def get_schedule(
        self,
        start: datetime,
        end: datetime,
        filters: TaskFilters | None = None,
    ) -> Result[list[ScheduleEntry]]:
        """Tasks due within [start, end], enriched and sorted by due date."""
        require_aware(start=start, end=end)
        if start > end:
            raise SchedulingError(
                ErrorCode.INVALID_RANGE,
                "Start date must be before end date",
                {"start": start.isoformat(), "end": end.isoformat()},
            )

        now = self._clock()
        tasks = self._store.find_by_date_range(start, end, filters)

        entries: list[ScheduleEntry] = []
        for task in self._sorted_by_due(tasks):
            days_until_due: int | None = None
            if task.due_date is not None:
                days_until_due = math.ceil((task.due_date - now) / timedelta(days=1))
            entries.append(
                ScheduleEntry(
                    task=task,
                    project=self._project(task.project_id),
                    is_overdue=task.is_overdue(now),
                    days_until_due=days_until_due,
                )
            )

        logger.debug("Schedule %s..%s -> %d entries", start, end, len(entries))
        return Result.ok(entries)

    @returns_result("get today's tasks")
    def get_today(self, assignee_id: str | None = None) -> Result[list[Task]]:
        start, end = self._day_bounds(self._local_date(self._clock()))
        filters = TaskFilters(assigned_to=assignee_id) if assignee_id else None
        return Result.ok(self._sorted_by_due(self._store.find_by_date_range(start, end, filters)))

    @returns_result("get this week's tasks")
    def get_this_week(self, assignee_id: str | None = None) -> Result[list[Task]]:
        """Tasks due between Sunday and Saturday of the current week."""
        today = self._local_date(self._clock())
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        start, _ = self._day_bounds(sunday)
        _, end = self._day_bounds(sunday + timedelta(days=6))
        filters = TaskFilters(assigned_to=assignee_id) if assignee_id else None
        return Result.ok(self._sorted_by_due(self._store.find_by_date_range(start, end, filters)))

    @returns_result("get upcoming tasks")
    def get_upcoming_tasks(self, days: int = 7, assignee_id: str | None = None) -> Result[list[Task]]:
        if days < 0:
            raise validation_error("days must be non-negative")
        today = self._local_date(self._clock())
        start, _ = self._day_bounds(today)
        _, end = self._day_bounds(today + timedelta(days=days))
        filters = TaskFilters(assigned_to=assignee_id) if assignee_id else None
        return Result.ok(self._sorted_by_due(self._store.find_by_date_range(start, end, filters)))

    # ---- availability ----

    @returns_result("get availability")
    def get_availability(
        self,
        day: date | datetime,
        assignee_id: str | None = None,
    ) -> Result[list[AvailabilitySlot]]:
        """Ten one-hour slots from 08:00 to 18:00 of the given day (workday timezone)."""
        return Result.ok(self._slots_for(self._local_date(day), assignee_id))

    # ---- conflicts ----

    @returns_result("detect conflicts")
    def detect_conflicts(self, candidate: ConflictCandidate) -> Result[list[SchedulingConflict]]:
        """
        Every overlapping task yields up to three records, one per matching rule:
        assignee-overlap (same assignee), resource-conflict (same project) and
        time-overlap (always). Records are not merged.

        Windows are compared closed: a task ending exactly when the candidate
        starts still conflicts.
        """
        conflicts: list[SchedulingConflict] = []
        if candidate.start_date is None or candidate.due_date is None:
            return Result.ok(conflicts)

        start, end = candidate.start_date, candidate.due_date
        require_aware(start_date=start, due_date=end)
        if start > end:
            raise SchedulingError(
                ErrorCode.INVALID_RANGE,
                "Start date must be before due date",
                {"start": start.isoformat(), "end": end.isoformat()},
            )

        for task in self._store.find_overlapping(start, end):
            if candidate.task_id and task.id == candidate.task_id:
                continue
            if task.start_date is None or task.due_date is None:
                continue
            if not (start <= task.due_date and end >= task.start_date):
                continue

            if candidate.assigned_to and task.assigned_to == candidate.assigned_to:
                conflicts.append(
                    SchedulingConflict(
                        conflict_type=ConflictType.ASSIGNEE_OVERLAP,
                        conflicting_task=task,
                        reason=f'{task.assigned_to} is already assigned to "{task.title}" during this time',
                    )
                )

            if task.project_id == candidate.project_id:
                conflicts.append(
                    SchedulingConflict(
                        conflict_type=ConflictType.RESOURCE_CONFLICT,
                        conflicting_task=task,
                        reason=f'Task "{task.title}" on the same project overlaps this time period',
                    )
                )

            conflicts.append(
                SchedulingConflict(
                    conflict_type=ConflictType.TIME_OVERLAP,
                    conflicting_task=task,
                    reason=f'Task "{task.title}" overlaps this time period',
                )
            )

        if conflicts:
            logger.info(
                "Conflicts for %s..%s assignee=%s: %d",
                start,
                end,
                candidate.assigned_to,
                len(conflicts),
            )
        return Result.ok(conflicts)

    # ---- suggestions ----

    @staticmethod
    def confidence_for(days_offset: int) -> int:
        penalty = 2 * days_offset + (10 if days_offset > 7 else 0)
        return max(20, 100 - penalty)

    @returns_result("suggest slots")
    def suggest_next_available_slot(
        self,
        duration_hours: float,
        assignee_id: str | None = None,
        start_after: datetime | None = None,
    ) -> Result[list[SuggestedSlot]]:
        """
        Look for ceil(duration_hours) consecutive free slots, at most one per day,
        over the next suggest_search_days days. Slots that begin before
        start_after are treated as taken.
        """
        if isinstance(duration_hours, bool) or not isinstance(duration_hours, (int, float)) or duration_hours <= 0:
            raise validation_error("duration_hours must be a positive number")
        require_aware(start_after=start_after)

        search_days = self._settings.suggest_search_days
        max_results = self._settings.suggest_max_results
        start_after = start_after or self._clock()
        first_day = self._local_date(start_after)
        hours_needed = math.ceil(duration_hours)
        length = timedelta(hours=duration_hours)

        suggestions: list[SuggestedSlot] = []
        for offset in range(search_days):
            day = first_day + timedelta(days=offset)
            run = 0
            run_start: datetime | None = None

            for slot in self._slots_for(day, assignee_id):
                free = slot.is_available and slot.start >= start_after
                if not free:
                    run = 0
                    run_start = None
                    continue

                if run == 0:
                    run_start = slot.start
                run += 1

                if run >= hours_needed and run_start is not None:
                    who = f"{assignee_id} has" if assignee_id else "There are"
                    suggestions.append(
                        SuggestedSlot(
                            start_date=run_start,
                            end_date=run_start + length,
                            confidence=self.confidence_for(offset),
                            reason=(
                                f"{who} {hours_needed} consecutive hour(s) available "
                                f"starting {run_start.isoformat()}"
                            ),
                        )
                    )
                    break

            if len(suggestions) >= max_results:
                break

        if not suggestions:
            raise SchedulingError(
                ErrorCode.NO_SLOTS_AVAILABLE,
                f"No available slots found for {duration_hours} hour(s) in the next {search_days} days",
                {"duration_hours": duration_hours, "assignee_id": assignee_id},
            )

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        logger.debug("Suggested %d slot(s) for %sh assignee=%s", len(suggestions), duration_hours, assignee_id)
        return Result.ok(suggestions)
