# src/schedule_engine/tasks/task_validation.py

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..core.errors import validation_error
from .task_models import CreateTask, TaskPriority, TaskStatus

TITLE_MAX = 200
DESCRIPTION_MAX = 2000
ASSIGNEE_MAX = 100

# Fields a plain update() may touch. Status and dependencies have their own operations.
UPDATABLE_FIELDS = frozenset(
    {
        "project_id",
        "title",
        "description",
        "priority",
        "assigned_to",
        "start_date",
        "due_date",
        "estimated_hours",
        "sort_order",
    }
)


def _check_text(
    errors: list[str],
    name: str,
    value: Any,
    *,
    required: bool,
    max_len: int | None = None,
) -> None:
    if value is None:
        if required:
            errors.append(f"{name} is required")
        return
    if not isinstance(value, str):
        errors.append(f"{name} must be a string")
        return
    if required and not value.strip():
        errors.append(f"{name} is required")
    if max_len is not None and len(value) > max_len:
        errors.append(f"{name} must be at most {max_len} characters")


def _check_instant(errors: list[str], name: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, datetime):
        errors.append(f"{name} must be a datetime")
    elif value.tzinfo is None or value.utcoffset() is None:
        errors.append(f"{name} must be timezone-aware")


def require_aware(**values: Any) -> None:
    """Raise VALIDATION_ERROR unless every non-None value is a timezone-aware datetime."""
    errors: list[str] = []
    for name, value in values.items():
        _check_instant(errors, name, value)
    if errors:
        raise validation_error(errors[0], errors)


def _check_window(errors: list[str], start: Any, due: Any) -> None:
    if (
        isinstance(start, datetime)
        and isinstance(due, datetime)
        and start.tzinfo is not None
        and due.tzinfo is not None
        and start > due
    ):
        errors.append("start_date must not be after due_date")


def _check_hours(errors: list[str], value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append("estimated_hours must be a number")
    elif value < 0:
        errors.append("estimated_hours must be non-negative")


def _parse_priority(errors: list[str], value: Any) -> TaskPriority | None:
    try:
        return TaskPriority(str(value).lower())
    except ValueError:
        errors.append(f"priority must be one of: {', '.join(p.value for p in TaskPriority)}")
        return None


def validate_create(data: CreateTask) -> CreateTask:
    """
    Check a create payload and return a normalized copy (enums parsed, text stripped).

    Raises VALIDATION_ERROR listing every problem found.
    """
    errors: list[str] = []

    _check_text(errors, "project_id", data.project_id, required=True)
    _check_text(errors, "title", data.title, required=True, max_len=TITLE_MAX)
    _check_text(errors, "description", data.description, required=False, max_len=DESCRIPTION_MAX)
    _check_text(errors, "assigned_to", data.assigned_to, required=False, max_len=ASSIGNEE_MAX)
    _check_instant(errors, "start_date", data.start_date)
    _check_instant(errors, "due_date", data.due_date)
    _check_window(errors, data.start_date, data.due_date)
    _check_hours(errors, data.estimated_hours)

    status: TaskStatus | None = None
    try:
        status = TaskStatus.parse(data.status)
    except ValueError as e:
        errors.append(str(e))

    priority = _parse_priority(errors, data.priority)

    deps = data.dependencies or []
    if not isinstance(deps, list) or not all(isinstance(d, str) and d for d in deps):
        errors.append("dependencies must be a list of task ids")

    if errors:
        raise validation_error("Invalid task data", errors)

    return CreateTask(
        project_id=data.project_id.strip(),
        title=data.title.strip(),
        description=data.description,
        status=status or TaskStatus.NOT_STARTED,
        priority=priority or TaskPriority.MEDIUM,
        assigned_to=data.assigned_to.strip() if data.assigned_to else None,
        start_date=data.start_date,
        due_date=data.due_date,
        estimated_hours=float(data.estimated_hours) if data.estimated_hours is not None else None,
        dependencies=list(dict.fromkeys(deps)),
    )


def validate_update(
    changes: Mapping[str, Any],
    *,
    current_start: datetime | None,
    current_due: datetime | None,
) -> dict[str, Any]:
    """
    Check an update payload against UPDATABLE_FIELDS and the same rules as create.

    The date window is checked against the merged result, so moving only the due
    date before the stored start date is rejected too.
    """
    if not isinstance(changes, Mapping):
        raise validation_error("Invalid update data", ["changes must be a mapping"])

    errors: list[str] = []

    if "status" in changes:
        errors.append("status cannot be changed by update; use update_task_status")
    if "dependencies" in changes:
        errors.append("dependencies cannot be changed by update; use update_task_dependencies")

    unknown = set(changes) - UPDATABLE_FIELDS - {"status", "dependencies"}
    if unknown:
        errors.append(f"unknown fields: {', '.join(sorted(unknown))}")

    out: dict[str, Any] = {}

    if "project_id" in changes:
        _check_text(errors, "project_id", changes["project_id"], required=True)
        out["project_id"] = changes["project_id"]
    if "title" in changes:
        _check_text(errors, "title", changes["title"], required=True, max_len=TITLE_MAX)
        if isinstance(changes["title"], str):
            out["title"] = changes["title"].strip()
    if "description" in changes:
        _check_text(errors, "description", changes["description"], required=False, max_len=DESCRIPTION_MAX)
        out["description"] = changes["description"]
    if "assigned_to" in changes:
        _check_text(errors, "assigned_to", changes["assigned_to"], required=False, max_len=ASSIGNEE_MAX)
        out["assigned_to"] = changes["assigned_to"] or None
    if "priority" in changes:
        priority = _parse_priority(errors, changes["priority"])
        if priority is not None:
            out["priority"] = priority
    for name in ("start_date", "due_date"):
        if name in changes:
            _check_instant(errors, name, changes[name])
            out[name] = changes[name]
    if "estimated_hours" in changes:
        _check_hours(errors, changes["estimated_hours"])
        out["estimated_hours"] = changes["estimated_hours"]
    if "sort_order" in changes:
        value = changes["sort_order"]
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            errors.append("sort_order must be an integer")
        out["sort_order"] = value

    _check_window(
        errors,
        out.get("start_date", current_start),
        out.get("due_date", current_due),
    )

    if errors:
        raise validation_error("Invalid update data", errors)

    return out

