# src/tact/tasks/board.py

from __future__ import annotations

from dataclasses import dataclass, field

from .lifecycle import TaskLifecycle
from .ordering import sort_bucket
from .task_models import Task, TaskStatus


@dataclass(slots=True)
class Board:
    """Live view of one day: what every surface renders after a refresh."""

    day: str
    todo: list[Task] = field(default_factory=list)
    done: list[Task] = field(default_factory=list)
    active_count: int = 0
    wip_limit: int = 0
    estimate_total: int = 0
    available_minutes: int = 0

    @property
    def over_budget(self) -> bool:
        return self.estimate_total > self.available_minutes

    def budget_alert(self) -> str | None:
        if not self.over_budget:
            return None
        h, m = divmod(self.estimate_total, 60)
        avail = self.available_minutes / 60
        return f"Time-budget alert: estimates total {h}h {m}m vs available {avail:g}h."


def matches(task: Task, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    notes = task.notes
    if isinstance(notes, dict):
        # Encrypted envelopes only expose their (cipher)text field.
        notes = notes.get("ct") or ""
    hay = " ".join([task.title, str(notes or ""), " ".join(task.tags), task.project_id or ""])
    return q in hay.lower()


async def load_board(
    lifecycle: TaskLifecycle,
    day: str,
    *,
    available_hours: float = 6.0,
    query: str = "",
) -> Board:
    today = await lifecycle.tasks_for(day, TaskStatus.TODAY)
    active = await lifecycle.tasks_for(day, TaskStatus.IN_PROGRESS)
    done = await lifecycle.tasks_for(day, TaskStatus.DONE)

    todo = sort_bucket([t for t in today + active if matches(t, query)])
    done_sorted = sorted((t for t in done if matches(t, query)), key=lambda t: t.completed_at or 0)

    return Board(
        day=day,
        todo=todo,
        done=done_sorted,
        active_count=len(active),
        wip_limit=lifecycle.wip_limit,
        estimate_total=sum(t.estimate_min for t in todo),
        available_minutes=int(available_hours * 60),
    )
