# src/schedule_engine/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..calendar.calendar_service import CalendarService
from ..config import Settings
from ..tasks.task_service import TaskService
from .ports import TaskRepo


@dataclass
class EngineState:
    # Settings are kept on the state for easy access by adapters.
    settings: Settings

    task_store: TaskRepo
    tasks: TaskService
    calendar: CalendarService
