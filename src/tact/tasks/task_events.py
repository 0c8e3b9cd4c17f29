# src/tact/tasks/task_events.py

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import Clock, StorageEngine
from ..storage.schema import EVENTS
from .task_models import Event, EventType, new_id

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 300


class EventLog:
    """Append-only audit trail. Events are never updated or removed one by one."""

    def __init__(self, storage: StorageEngine, clock: Clock) -> None:
        self._storage = storage
        self._clock = clock

    async def append(
        self,
        etype: EventType,
        task_id: str | None,
        meta: dict[str, Any] | None = None,
    ) -> Event:
        event = Event(
            id=new_id(),
            task_id=task_id,
            type=etype,
            ts=self._clock.now_ms(),
            meta=dict(meta or {}),
        )
        await self._storage.put(EVENTS, event.to_record())
        logger.debug("Event %s task=%s meta=%s", etype.value, task_id, event.meta)
        return event

    async def all(self) -> list[Event]:
        """All events by ts ascending; equal timestamps keep insertion order."""
        records = await self._storage.all(EVENTS)
        events = [Event.from_record(r) for r in records]
        events.sort(key=lambda e: e.ts)
        return events

    async def for_task(self, task_id: str) -> list[Event]:
        records = await self._storage.query_by_index(EVENTS, "byTask", task_id)
        events = [Event.from_record(r) for r in records]
        events.sort(key=lambda e: e.ts)
        return events

    async def recent(self, limit: int = HISTORY_LIMIT) -> list[Event]:
        events = await self.all()
        return events[-limit:] if limit > 0 else []

    async def clear(self) -> None:
        await self._storage.clear(EVENTS)
