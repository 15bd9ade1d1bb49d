# src/schedule_engine/bootstrap.py

"""
Composition root.

- loads settings once (unless injected),
- optionally configures logging,
- wires a task store into both services.

Neither service knows about the other; they only share the store.
"""

from __future__ import annotations

import logging

from .calendar.calendar_service import CalendarService, ProjectLookup
from .config import Settings, get_settings
from .core.ports import Clock, DurationEstimator, TaskRepo
from .core.state import EngineState
from .logging_setup import setup_logging
from .tasks.task_service import TaskService
from .tasks.task_store import InMemoryTaskStore

logger = logging.getLogger(__name__)


def create_engine(
    *,
    settings: Settings | None = None,
    task_store: TaskRepo | None = None,
    clock: Clock | None = None,
    estimate: DurationEstimator | None = None,
    project_lookup: ProjectLookup | None = None,
    configure_logging: bool = False,
) -> EngineState:
    """
    Build an EngineState.

    Keeping every collaborator injectable makes the engine easy to test and avoids
    hidden global config reads. Without a task_store an InMemoryTaskStore is used.
    """
    if settings is None:
        settings = get_settings()

    if configure_logging:
        log_file = setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)
        logger.info("Logging to %s", log_file)

    store = task_store if task_store is not None else InMemoryTaskStore(clock=clock)

    state = EngineState(
        settings=settings,
        task_store=store,
        tasks=TaskService(store, settings=settings, estimate=estimate, clock=clock),
        calendar=CalendarService(store, settings=settings, clock=clock, project_lookup=project_lookup),
    )
    logger.info("Schedule engine ready tz=%s", settings.timezone)
    return state
