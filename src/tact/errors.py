# src/tact/errors.py

"""Typed errors raised by the tracker engine.

Storage and sync failures are recovered at startup (degraded modes) and only
logged; lifecycle and import failures reach the caller with state unchanged.
"""

from __future__ import annotations


class TactError(Exception):
    pass


class StorageUnavailable(TactError):
    """The preferred storage backend could not be initialized."""


class SyncUnavailable(TactError):
    """No cross-instance channel could be opened."""


class NotFound(TactError):
    pass


class TaskNotFound(NotFound):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task not found: {task_id}")


class AdmissionRejected(TactError):
    """Starting the task would exceed the WIP limit for the day."""

    def __init__(self, task_id: str, active: int, limit: int) -> None:
        self.task_id = task_id
        self.active = active
        self.limit = limit
        super().__init__(f"WIP limit reached ({active}/{limit})")


class InvalidTransition(TactError):
    def __init__(self, task_id: str, action: str, status: str) -> None:
        self.task_id = task_id
        self.action = action
        self.status = status
        super().__init__(f"cannot {action} a task in status '{status}'")


class ConfirmationRequired(TactError):
    pass


class ImportInvalid(TactError):
    pass


class InvalidRecord(TactError):
    """A stored record breaks a task invariant (e.g. done without completedAt)."""

    def __init__(self, task_id: str, problem: str) -> None:
        self.task_id = task_id
        self.problem = problem
        super().__init__(f"task {task_id}: {problem}")
