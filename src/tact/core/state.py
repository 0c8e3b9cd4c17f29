# src/tact/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .ports import Clock, StorageEngine

if TYPE_CHECKING:
    from ..day.close import DayCloseEngine
    from ..sync.bus import SyncBus
    from ..tasks.lifecycle import TaskLifecycle
    from ..tasks.task_events import EventLog


@dataclass
class AppContext:
    """
    Everything one running tracker instance owns.

    Built once by the bootstrap and passed to whoever needs it; there is no
    module-level backend handle.
    """

    settings: Any
    clock: Clock
    storage: StorageEngine
    bus: SyncBus
    events: EventLog
    lifecycle: TaskLifecycle
    day_close: DayCloseEngine

    # Summary rendering flags (user-toggleable at runtime).
    summary_markdown: bool = True
    summary_with_times: bool = True
    available_hours: float = 6.0
