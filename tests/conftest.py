# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tact.core.state import AppContext
from tact.day.close import DayCloseEngine, Escalation
from tact.storage.json_backend import JsonBackend
from tact.storage.sqlite_backend import SqliteBackend
from tact.sync.bus import SyncBus
from tact.tasks.lifecycle import TaskLifecycle
from tact.tasks.task_events import EventLog

from .fakes import FakeClock, RecordingChannel


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tact-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "tact.sqlite3",
        fallback_path=tmp_path / "tact.json",
        # Storage / sync
        storage_backend="auto",
        sync_enabled=True,
        sync_channel="local",
        sync_dir=tmp_path / "sync",
        # Lifecycle / day close
        wip_limit=2,
        rollover_threshold=3,
        available_hours=6.0,
        # Summary
        summary_markdown=True,
        summary_with_times=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock("2024-06-03")


@pytest.fixture(params=["sqlite", "json-file", "json-memory"])
def storage(request, tmp_path: Path):
    """Every storage backend; the same tests must pass against each."""
    if request.param == "sqlite":
        return SqliteBackend(tmp_path / "tact.sqlite3")
    if request.param == "json-file":
        return JsonBackend(tmp_path / "tact.json")
    return JsonBackend(None)


@pytest.fixture()
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture()
def escalations() -> list[Escalation]:
    return []


@pytest.fixture()
def ctx(settings, clock, storage, channel, escalations) -> AppContext:
    """
    AppContext wired with deterministic fakes.

    NOTE: storage is real (parametrized over all backends) because its
    behaviour is part of what the lifecycle tests check.
    """
    bus = SyncBus(channel)
    events = EventLog(storage, clock)
    lifecycle = TaskLifecycle(storage, events, bus, clock, wip_limit=settings.wip_limit)
    day_close = DayCloseEngine(
        lifecycle,
        storage,
        events,
        bus,
        clock,
        rollover_threshold=settings.rollover_threshold,
        on_escalation=escalations.append,
    )
    return AppContext(
        settings=settings,
        clock=clock,
        storage=storage,
        bus=bus,
        events=events,
        lifecycle=lifecycle,
        day_close=day_close,
        summary_markdown=True,
        summary_with_times=False,
        available_hours=settings.available_hours,
    )
