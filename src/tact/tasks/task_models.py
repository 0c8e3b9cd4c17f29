# src/tact/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.ports import Record


def new_id() -> str:
    return str(uuid.uuid4())


class TaskStatus(StrEnum):
    BACKLOG = "backlog"
    TODAY = "today"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.BACKLOG
        try:
            return cls(raw)
        except ValueError:
            return cls.BACKLOG


class EventType(StrEnum):
    CREATE = "create"
    START = "start"
    COMPLETE = "complete"
    EDIT = "edit"
    ROLLOVER = "rollover"
    CLOSE_DAY = "closeDay"


def _int_or_none(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _order_value(v: Any, default: float) -> float | int:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return v
    return default


@dataclass(slots=True)
class Task:
    id: str
    title: str
    status: TaskStatus
    created_at: int
    day_key: str | None = None

    notes: Any = None
    project_id: str | None = None
    tags: list[str] = field(default_factory=list)

    estimate_min: int = 0
    actual_min: int = 0

    start_at: int | None = None
    completed_at: int | None = None

    rollover_count: int = 0
    blocked_reason: str | None = None
    order: float | int = 0
    day_closed_at: int | None = None

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    def to_record(self) -> Record:
        rec: Record = {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "status": self.status.value,
            "projectId": self.project_id,
            "tags": list(self.tags),
            "estimateMin": self.estimate_min,
            "actualMin": self.actual_min,
            "createdAt": self.created_at,
            "startAt": self.start_at,
            "completedAt": self.completed_at,
            "dayKey": self.day_key,
            "rolloverCount": self.rollover_count,
            "blockedReason": self.blocked_reason,
            "order": self.order,
        }
        if self.day_closed_at is not None:
            rec["dayClosedAt"] = self.day_closed_at
        return rec

    @classmethod
    def from_record(cls, rec: Record) -> Task:
        created_at = _int_or_none(rec.get("createdAt")) or 0
        status = TaskStatus.from_db(rec.get("status"))
        # Only done tasks carry a completion stamp.
        completed_at = _int_or_none(rec.get("completedAt")) if status == TaskStatus.DONE else None
        tags_raw = rec.get("tags") or []
        tags: list[str] = []
        for t in tags_raw if isinstance(tags_raw, list) else []:
            s = str(t)
            if s not in tags:
                tags.append(s)
        return cls(
            id=str(rec["id"]),
            title=str(rec.get("title") or ""),
            status=status,
            created_at=created_at,
            day_key=rec.get("dayKey") or None,
            notes=rec.get("notes"),
            project_id=rec.get("projectId") or None,
            tags=tags,
            estimate_min=max(0, _int_or_none(rec.get("estimateMin")) or 0),
            actual_min=max(0, _int_or_none(rec.get("actualMin")) or 0),
            start_at=_int_or_none(rec.get("startAt")),
            completed_at=completed_at,
            rollover_count=max(0, _int_or_none(rec.get("rolloverCount")) or 0),
            blocked_reason=rec.get("blockedReason") or None,
            order=_order_value(rec.get("order"), created_at),
            day_closed_at=_int_or_none(rec.get("dayClosedAt")),
        )


def new_task(
    title: str,
    *,
    now_ms: int,
    today: str,
    day_key: str | None = None,
    notes: Any = None,
    project_id: str | None = None,
    tags: list[str] | None = None,
    estimate_min: int = 0,
    start_at: int | None = None,
) -> Task:
    """
    Build a fresh Task the way producers (quick-add, imports, the console) do.

    Status is derived from the requested day: `today` when it is the current
    day, `backlog` otherwise (including no day at all).
    """
    title = (title or "").strip()
    if not title:
        raise ValueError("title is required")
    return Task(
        id=new_id(),
        title=title,
        status=TaskStatus.TODAY if day_key == today else TaskStatus.BACKLOG,
        created_at=now_ms,
        day_key=day_key,
        notes=notes,
        project_id=project_id,
        tags=list(dict.fromkeys(tags or [])),
        estimate_min=max(0, int(estimate_min)),
        start_at=start_at,
        order=now_ms,
    )


@dataclass(slots=True, frozen=True)
class Event:
    id: str
    task_id: str | None
    type: EventType
    ts: int
    meta: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Record:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "type": self.type.value,
            "ts": self.ts,
            "meta": dict(self.meta),
        }

    @classmethod
    def from_record(cls, rec: Record) -> Event:
        meta = rec.get("meta")
        try:
            etype = EventType(rec.get("type"))
        except ValueError:
            etype = EventType.EDIT
        return cls(
            id=str(rec["id"]),
            task_id=rec.get("taskId"),
            type=etype,
            ts=_int_or_none(rec.get("ts")) or 0,
            meta=meta if isinstance(meta, dict) else {},
        )


@dataclass(slots=True)
class Day:
    id: str
    closed_at: int
    done_count: int
    unfinished_count: int
    snapshot_markdown: str

    def to_record(self) -> Record:
        return {
            "id": self.id,
            "closedAt": self.closed_at,
            "counts": {"done": self.done_count, "unfinished": self.unfinished_count},
            "snapshotMarkdown": self.snapshot_markdown,
        }

    @classmethod
    def from_record(cls, rec: Record) -> Day:
        counts = rec.get("counts") or {}
        return cls(
            id=str(rec["id"]),
            closed_at=_int_or_none(rec.get("closedAt")) or 0,
            done_count=_int_or_none(counts.get("done")) or 0,
            unfinished_count=_int_or_none(counts.get("unfinished")) or 0,
            snapshot_markdown=str(rec.get("snapshotMarkdown") or ""),
        )
