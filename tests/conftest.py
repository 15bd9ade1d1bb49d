# tests/conftest.py

from __future__ import annotations

import pytest

from schedule_engine.bootstrap import create_engine
from schedule_engine.calendar.calendar_service import CalendarService
from schedule_engine.config import Settings
from schedule_engine.core.state import EngineState
from schedule_engine.tasks.task_service import TaskService
from schedule_engine.tasks.task_store import InMemoryTaskStore

from .fakes import FixedClock, utc


@pytest.fixture()
def settings() -> Settings:
    """
    Built-in defaults only.

    We intentionally avoid Settings.from_env() here to keep unit tests isolated
    from the developer's environment and .env file.
    """
    return Settings.defaults()


@pytest.fixture()
def clock() -> FixedClock:
    # Wednesday, mid-day UTC.
    return FixedClock(utc(2024, 2, 14, 12))


@pytest.fixture()
def store(clock: FixedClock) -> InMemoryTaskStore:
    return InMemoryTaskStore(clock=clock)


@pytest.fixture()
def engine(settings: Settings, store: InMemoryTaskStore, clock: FixedClock) -> EngineState:
    """Both services wired to one in-memory store and the fixed clock."""
    return create_engine(settings=settings, task_store=store, clock=clock)


@pytest.fixture()
def tasks(engine: EngineState) -> TaskService:
    return engine.tasks


@pytest.fixture()
def calendar(engine: EngineState) -> CalendarService:
    return engine.calendar
