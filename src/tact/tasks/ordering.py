# src/tact/tasks/ordering.py

"""
Relative ordering keys for tasks inside one day/status bucket.

Moving a task in front of a neighbour gives it a key halfway between the
neighbour and the task currently before it. When float precision can no
longer split that gap, the bucket is renumbered with evenly spaced keys,
keeping its current order.
"""

from __future__ import annotations

from collections.abc import Sequence

from .task_models import Task

ORDER_STEP = 1.0


def sort_bucket(tasks: Sequence[Task]) -> list[Task]:
    """Sort by order key; equal keys keep their insertion order (stable sort)."""
    return sorted(tasks, key=lambda t: t.order)


def key_before(bucket: Sequence[Task], index: int) -> float | None:
    """
    A key strictly between bucket[index - 1] and bucket[index], or one step
    below bucket[index] when it is the first task.

    Returns None when no such float exists and the bucket must be renumbered.
    """
    pivot = float(bucket[index].order)
    if index == 0:
        key = pivot - ORDER_STEP
        return key if key < pivot else None
    prev = float(bucket[index - 1].order)
    mid = prev + (pivot - prev) / 2
    if prev < mid < pivot:
        return mid
    return None


def renumber(bucket: Sequence[Task]) -> list[Task]:
    """Respace keys from the first task's key; returns the tasks whose key changed."""
    if not bucket:
        return []
    base = float(bucket[0].order)
    changed: list[Task] = []
    for i, task in enumerate(bucket):
        key = base + i * ORDER_STEP
        if task.order != key:
            task.order = key
            changed.append(task)
    return changed
