"""Task scheduling and dependency engine: lifecycle, dependency graph, critical path, calendar."""

from .bootstrap import create_engine
from .calendar.calendar_models import ConflictCandidate, ConflictType
from .calendar.calendar_service import CalendarService
from .config import Settings, get_settings
from .core.errors import ErrorCode, SchedulingError
from .core.results import Result
from .tasks.task_models import CreateTask, Task, TaskPriority, TaskStatus
from .tasks.task_service import TaskService
from .tasks.task_store import InMemoryTaskStore

__all__ = [
    "CalendarService",
    "ConflictCandidate",
    "ConflictType",
    "CreateTask",
    "ErrorCode",
    "InMemoryTaskStore",
    "Result",
    "SchedulingError",
    "Settings",
    "Task",
    "TaskPriority",
    "TaskService",
    "TaskStatus",
    "create_engine",
    "get_settings",
]
