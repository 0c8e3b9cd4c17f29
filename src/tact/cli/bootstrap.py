# src/tact/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the storage backend and the sync channel,
- wires lifecycle, event log and day-close engine into an AppContext.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.ports import Clock
from ..core.state import AppContext
from ..day.close import DayCloseEngine, EscalationHandler
from ..storage.factory import open_storage
from ..sync.bus import LocalHub, SyncBus, open_channel
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.task_events import EventLog

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.fallback_path.parent.mkdir(parents=True, exist_ok=True)


async def create_context(
    *,
    settings=None,
    clock: Clock | None = None,
    hub: LocalHub | None = None,
    on_escalation: EscalationHandler | None = None,
) -> AppContext:
    """
    Build an AppContext from the provided settings.

    Must run inside the event loop that will serve the context: the sync
    channel dispatches peer signals onto the loop it was opened on.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    clock = clock or SystemClock()

    try:
        _ensure_local_dirs(settings)
    except OSError:
        logger.warning("Could not create local data dirs under %s", settings.data_dir, exc_info=True)

    storage = open_storage(settings)
    bus = SyncBus(open_channel(settings, hub=hub), enabled=bool(settings.sync_enabled))
    events = EventLog(storage, clock)
    lifecycle = TaskLifecycle(storage, events, bus, clock, wip_limit=settings.wip_limit)
    day_close = DayCloseEngine(
        lifecycle,
        storage,
        events,
        bus,
        clock,
        rollover_threshold=settings.rollover_threshold,
        on_escalation=on_escalation,
    )

    ctx = AppContext(
        settings=settings,
        clock=clock,
        storage=storage,
        bus=bus,
        events=events,
        lifecycle=lifecycle,
        day_close=day_close,
        summary_markdown=bool(settings.summary_markdown),
        summary_with_times=bool(settings.summary_with_times),
        available_hours=float(settings.available_hours),
    )
    logger.info(
        "Context ready storage=%s sync=%s wip=%s",
        storage.name,
        "on" if bus.available else "unavailable",
        lifecycle.wip_limit,
    )
    return ctx


async def close_context(ctx: AppContext) -> None:
    """Best-effort teardown (no exceptions should escape)."""
    try:
        ctx.bus.close()
    except Exception:
        logger.debug("Sync close failed.", exc_info=True)
    try:
        await ctx.storage.close()
    except Exception:
        logger.debug("Storage close failed.", exc_info=True)
