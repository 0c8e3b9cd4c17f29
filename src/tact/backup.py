# src/tact/backup.py

"""Bulk export / import of tasks and events as one JSON payload."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .core.ports import Clock, StorageEngine
from .errors import ImportInvalid
from .storage.schema import DAYS, EVENTS, TASKS
from .sync.bus import SyncBus
from .tasks.task_events import EventLog

logger = logging.getLogger(__name__)


async def export_payload(storage: StorageEngine, events: EventLog, clock: Clock) -> dict[str, Any]:
    return {
        "exportedAt": clock.now_ms(),
        "tasks": await storage.all(TASKS),
        "events": [e.to_record() for e in await events.all()],
    }


def validate_payload(data: Any) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Check the payload shape; raises ImportInvalid, never touches storage."""
    if not isinstance(data, dict):
        raise ImportInvalid("payload must be a JSON object")
    tasks = data.get("tasks")
    events = data.get("events")
    if not isinstance(tasks, list) or not isinstance(events, list):
        raise ImportInvalid("payload needs 'tasks' and 'events' lists")
    for kind, items in (("tasks", tasks), ("events", events)):
        for i, item in enumerate(items):
            if not isinstance(item, dict) or not isinstance(item.get("id"), str) or not item["id"]:
                raise ImportInvalid(f"{kind}[{i}] is not a record with a string id")
    return tasks, events


async def import_payload(storage: StorageEngine, bus: SyncBus, data: Any) -> tuple[int, int]:
    """
    Replace all tracker state with the payload.

    Validation happens before the first write; closed-day snapshots are
    cleared as well since they describe the replaced tasks.
    """
    tasks, events = validate_payload(data)

    await storage.clear(TASKS)
    await storage.clear(EVENTS)
    await storage.clear(DAYS)
    for rec in tasks:
        await storage.put(TASKS, rec)
    for rec in events:
        await storage.put(EVENTS, rec)

    bus.notify_refresh()
    logger.info("Imported %d tasks and %d events", len(tasks), len(events))
    return len(tasks), len(events)


async def clear_all(storage: StorageEngine, bus: SyncBus) -> None:
    await storage.clear(TASKS)
    await storage.clear(EVENTS)
    await storage.clear(DAYS)
    bus.notify_refresh()
    logger.info("All tracker data erased")


def write_payload(path: str | Path, payload: dict[str, Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
    os.replace(tmp, path)
    return path


def read_payload(path: str | Path) -> Any:
    try:
        return json.loads(Path(path).read_text("utf-8"))
    except (OSError, ValueError) as e:
        raise ImportInvalid(f"cannot read {path}: {e}") from e
