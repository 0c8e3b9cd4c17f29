# src/tact/tasks/lifecycle.py

from __future__ import annotations

"""
Task lifecycle.

Every transition reads the current record, validates it, mutates it in
memory, persists the whole record, appends an audit event and signals peers:

    backlog/today --start--> in-progress      (WIP admission control)
    *             --complete--> done
    in-progress/today --defer--> today
    done          --undo--> today
    *             --delete--> (removed, caller must confirm)

A refused transition raises and leaves the stored record untouched.
"""

import logging
from typing import Any

from ..config import DEFAULT_WIP_LIMIT, clamp_wip_limit
from ..core.clock import today_key
from ..core.ports import Clock, StorageEngine
from ..errors import (
    AdmissionRejected,
    ConfirmationRequired,
    InvalidRecord,
    InvalidTransition,
    TaskNotFound,
)
from ..storage.schema import TASKS
from ..sync.bus import SyncBus
from .ordering import key_before, renumber, sort_bucket
from .task_events import EventLog
from .task_models import EventType, Task, TaskStatus

logger = logging.getLogger(__name__)

OPEN_STATUSES = (TaskStatus.BACKLOG, TaskStatus.TODAY, TaskStatus.IN_PROGRESS)
MOVE_TARGETS = ("today", "done")


def check_invariants(task: Task) -> None:
    if task.is_done != (task.completed_at is not None):
        raise InvalidRecord(
            task.id, f"status={task.status.value} with completedAt={task.completed_at}"
        )
    if task.rollover_count < 0 or task.estimate_min < 0 or task.actual_min < 0:
        raise InvalidRecord(task.id, "negative counter")


class TaskLifecycle:
    def __init__(
        self,
        storage: StorageEngine,
        events: EventLog,
        bus: SyncBus,
        clock: Clock,
        *,
        wip_limit: int = DEFAULT_WIP_LIMIT,
    ) -> None:
        self._storage = storage
        self._events = events
        self._bus = bus
        self._clock = clock
        self._wip_limit = clamp_wip_limit(wip_limit)

    @property
    def wip_limit(self) -> int:
        return self._wip_limit

    @wip_limit.setter
    def wip_limit(self, value: int) -> None:
        self._wip_limit = clamp_wip_limit(value)
        logger.info("WIP limit set to %s", self._wip_limit)

    # ---- reads ----

    async def get(self, task_id: str) -> Task | None:
        rec = await self._storage.get(TASKS, task_id)
        return Task.from_record(rec) if rec else None

    async def require(self, task_id: str) -> Task:
        task = await self.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def all_tasks(self) -> list[Task]:
        return [Task.from_record(r) for r in await self._storage.all(TASKS)]

    async def tasks_for(self, day: str, status: TaskStatus) -> list[Task]:
        records = await self._storage.query_by_index(TASKS, "byDayStatus", [day, status.value])
        return [Task.from_record(r) for r in records]

    async def active_count(self, day: str | None = None) -> int:
        day = day or today_key(self._clock)
        return len(await self.tasks_for(day, TaskStatus.IN_PROGRESS))

    async def find_duplicate(self, title: str) -> Task | None:
        """An open task with the same title (case-insensitive), if any."""
        needle = title.strip().lower()
        for task in await self.all_tasks():
            if (
                task.status in OPEN_STATUSES
                and task.completed_at is None
                and task.title.strip().lower() == needle
            ):
                return task
        return None

    # ---- writes ----

    async def _save(self, task: Task, etype: EventType, meta: dict[str, Any] | None = None) -> Task:
        check_invariants(task)
        await self._storage.put(TASKS, task.to_record())
        await self._events.append(etype, task.id, meta)
        self._bus.notify_refresh()
        return task

    async def create(self, task: Task, *, source: str = "manual") -> Task:
        if not task.title.strip():
            raise ValueError("title is required")
        await self._save(task, EventType.CREATE, {"source": source})
        logger.info("Task created id=%s status=%s day=%s", task.id, task.status.value, task.day_key)
        return task

    async def _admit(self, task: Task, day: str, action: str) -> None:
        """Raise AdmissionRejected if one more active task would exceed the WIP limit for `day`."""
        active = await self.active_count(day)
        if active >= self._wip_limit:
            logger.info(
                "%s refused id=%s active=%s limit=%s", action.capitalize(), task.id, active, self._wip_limit
            )
            raise AdmissionRejected(task.id, active, self._wip_limit)

    async def start(self, task_id: str) -> Task:
        task = await self.require(task_id)
        if task.status == TaskStatus.DONE:
            raise InvalidTransition(task_id, "start", task.status.value)

        day = today_key(self._clock)
        if task.status != TaskStatus.IN_PROGRESS or task.day_key != day:
            await self._admit(task, day, "start")
            task.status = TaskStatus.IN_PROGRESS
            task.day_key = day

        if task.start_at is None:
            task.start_at = self._clock.now_ms()
        return await self._save(task, EventType.START)

    async def complete(self, task_id: str) -> Task:
        task = await self.require(task_id)
        task.status = TaskStatus.DONE
        task.completed_at = self._clock.now_ms()
        return await self._save(task, EventType.COMPLETE)

    async def defer(self, task_id: str, reason: str | None = None) -> Task:
        task = await self.require(task_id)
        if task.status not in (TaskStatus.TODAY, TaskStatus.IN_PROGRESS):
            raise InvalidTransition(task_id, "defer", task.status.value)
        task.status = TaskStatus.TODAY
        task.start_at = None
        task.blocked_reason = reason or task.blocked_reason
        task.order = self._clock.now_ms()
        return await self._save(task, EventType.EDIT, {"action": "defer", "reason": reason})

    async def undo(self, task_id: str) -> Task:
        task = await self.require(task_id)
        if task.status != TaskStatus.DONE:
            raise InvalidTransition(task_id, "undo", task.status.value)
        task.status = TaskStatus.TODAY
        task.completed_at = None
        return await self._save(task, EventType.EDIT, {"action": "undoComplete"})

    async def delete(self, task_id: str, *, confirmed: bool = False) -> bool:
        """Remove a task for good. Its events stay in the audit trail."""
        if not confirmed:
            raise ConfirmationRequired(f"deleting {task_id} needs explicit confirmation")
        if await self._storage.get(TASKS, task_id) is None:
            return False
        await self._storage.delete(TASKS, task_id)
        await self._events.append(EventType.EDIT, task_id, {"action": "delete"})
        self._bus.notify_refresh()
        logger.info("Task deleted id=%s", task_id)
        return True

    async def log_time(self, task_id: str, minutes: int) -> Task:
        """Add focus-timer minutes to the task's actual time."""
        minutes = int(minutes)
        if minutes <= 0:
            raise ValueError("minutes must be positive")
        task = await self.require(task_id)
        task.actual_min += minutes
        return await self._save(task, EventType.EDIT, {"action": "logTime", "minutes": minutes})

    async def move(self, task_id: str, *, to: str, before: str | None = None) -> Task:
        """
        Drop a task into today's `today` or `done` list, optionally in front
        of another task of that list.
        """
        if to not in MOVE_TARGETS:
            raise ValueError(f"unknown list {to!r}")
        task = await self.require(task_id)
        day = today_key(self._clock)
        if to == "today" and task.status == TaskStatus.IN_PROGRESS and task.day_key != day:
            # Joins today's active set.
            await self._admit(task, day, "move")
        now = self._clock.now_ms()

        task.day_key = day
        if to == "done":
            if task.status != TaskStatus.DONE:
                task.completed_at = now
            task.status = TaskStatus.DONE
            bucket_statuses = (TaskStatus.DONE,)
        else:
            if task.status != TaskStatus.IN_PROGRESS:
                task.status = TaskStatus.TODAY
            task.completed_at = None
            bucket_statuses = (TaskStatus.TODAY, TaskStatus.IN_PROGRESS)

        bucket: list[Task] = []
        for status in bucket_statuses:
            bucket.extend(t for t in await self.tasks_for(day, status) if t.id != task.id)
        bucket = sort_bucket(bucket)

        task.order = now
        pivot_index = next((i for i, t in enumerate(bucket) if t.id == before), None)
        if before is not None and pivot_index is not None:
            key = key_before(bucket, pivot_index)
            if key is None:
                changed = renumber(bucket)
                for other in changed:
                    await self._storage.put(TASKS, other.to_record())
                logger.debug("Renumbered %d tasks of %s/%s", len(changed), day, to)
                key = key_before(bucket, pivot_index)
            if key is not None:
                task.order = key

        return await self._save(task, EventType.EDIT, {"action": "drag", "to": to})

    async def clear_done(self, day: str | None = None) -> int:
        day = day or today_key(self._clock)
        done = await self.tasks_for(day, TaskStatus.DONE)
        for task in done:
            await self._storage.delete(TASKS, task.id)
            await self._events.append(EventType.EDIT, task.id, {"action": "clearDone"})
        if done:
            self._bus.notify_refresh()
        return len(done)
