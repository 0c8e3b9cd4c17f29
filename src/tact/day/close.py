# src/tact/day/close.py

from __future__ import annotations

"""
Day close.

Closing the current day:
1. loads the day's today / in-progress / done tasks,
2. stamps completedAt on done tasks that lack it (event tagged auto),
3. rolls every unfinished task to the next day (rolloverCount + 1,
   status back to today) and escalates tasks that rolled too often,
4. re-reads the done list and renders the summary,
5. stores the Day snapshot and a closeDay event.

Each task is written with a single whole-record put, so an interrupted close
leaves every task either rolled or not, never half-rolled.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..config import DEFAULT_ROLLOVER_THRESHOLD
from ..core.clock import next_day_key, today_key
from ..core.ports import Clock, StorageEngine
from ..storage.schema import DAYS, TASKS
from ..sync.bus import SyncBus
from ..tasks.lifecycle import TaskLifecycle, check_invariants
from ..tasks.ordering import sort_bucket
from ..tasks.task_events import EventLog
from ..tasks.task_models import Day, EventType, Task, TaskStatus
from .summary import render_summary

logger = logging.getLogger(__name__)

EscalationHandler = Callable[["Escalation"], Any]


@dataclass(slots=True, frozen=True)
class Escalation:
    """A task that keeps rolling over; the UI decides how loudly to say so."""

    task_id: str
    title: str
    count: int

    @property
    def message(self) -> str:
        return f"Rollover x{self.count}: Consider delete, delegate, or rescope — “{self.title}”"


@dataclass(slots=True)
class DayCloseResult:
    day: str
    next_day: str
    done: list[Task]
    rolled: list[Task]
    summary: str
    snapshot: Day
    escalations: list[Escalation] = field(default_factory=list)


class DayCloseEngine:
    def __init__(
        self,
        lifecycle: TaskLifecycle,
        storage: StorageEngine,
        events: EventLog,
        bus: SyncBus,
        clock: Clock,
        *,
        rollover_threshold: int = DEFAULT_ROLLOVER_THRESHOLD,
        on_escalation: EscalationHandler | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._storage = storage
        self._events = events
        self._bus = bus
        self._clock = clock
        self.rollover_threshold = max(1, int(rollover_threshold))
        self.on_escalation = on_escalation

    async def _unfinished(self, day: str) -> list[Task]:
        todo = await self._lifecycle.tasks_for(day, TaskStatus.TODAY)
        active = await self._lifecycle.tasks_for(day, TaskStatus.IN_PROGRESS)
        return sort_bucket(todo + active)

    async def _done(self, day: str) -> list[Task]:
        done = await self._lifecycle.tasks_for(day, TaskStatus.DONE)
        return sorted(done, key=lambda t: t.completed_at or 0)

    async def close_day(self, *, with_times: bool = True, markdown: bool = True) -> DayCloseResult:
        day = today_key(self._clock)
        next_day = next_day_key(day)
        unfinished = await self._unfinished(day)
        done = await self._lifecycle.tasks_for(day, TaskStatus.DONE)
        logger.info(
            "Closing day %s: done=%d unfinished=%d", day, len(done), len(unfinished)
        )

        for task in done:
            if task.completed_at is None:
                task.completed_at = self._clock.now_ms()
                check_invariants(task)
                await self._storage.put(TASKS, task.to_record())
                await self._events.append(EventType.COMPLETE, task.id, {"auto": True})
                logger.warning("Done task without completedAt finalized id=%s", task.id)

        escalations: list[Escalation] = []
        for task in unfinished:
            task.rollover_count += 1
            task.day_closed_at = self._clock.now_ms()
            task.day_key = next_day
            task.status = TaskStatus.TODAY
            check_invariants(task)
            await self._storage.put(TASKS, task.to_record())
            await self._events.append(
                EventType.ROLLOVER, task.id, {"to": next_day, "count": task.rollover_count}
            )
            if task.rollover_count >= self.rollover_threshold:
                esc = Escalation(task_id=task.id, title=task.title, count=task.rollover_count)
                escalations.append(esc)
                logger.info("Escalation: %s", esc.message)
                self._escalate(esc)

        final_done = await self._done(day)
        summary = render_summary(
            day, final_done, unfinished, with_times=with_times, markdown=markdown
        )
        snapshot = Day(
            id=day,
            closed_at=self._clock.now_ms(),
            done_count=len(final_done),
            unfinished_count=len(unfinished),
            snapshot_markdown=summary,
        )
        await self._storage.put(DAYS, snapshot.to_record())
        await self._events.append(EventType.CLOSE_DAY, None, {"day": day})
        self._bus.notify_refresh()

        return DayCloseResult(
            day=day,
            next_day=next_day,
            done=final_done,
            rolled=unfinished,
            summary=summary,
            snapshot=snapshot,
            escalations=escalations,
        )

    def _escalate(self, esc: Escalation) -> None:
        if self.on_escalation is None:
            return
        try:
            self.on_escalation(esc)
        except Exception:
            logger.exception("Escalation handler crashed.")

    async def copy_current_list(self, *, with_times: bool = True, markdown: bool = True) -> str:
        """Summary of the live day, without closing anything."""
        day = today_key(self._clock)
        return render_summary(
            day,
            await self._done(day),
            await self._unfinished(day),
            with_times=with_times,
            markdown=markdown,
        )

    async def get_day(self, day: str) -> Day | None:
        rec = await self._storage.get(DAYS, day)
        return Day.from_record(rec) if rec else None

    async def closed_days(self) -> list[Day]:
        days = [Day.from_record(r) for r in await self._storage.all(DAYS)]
        days.sort(key=lambda d: d.closed_at)
        return days
