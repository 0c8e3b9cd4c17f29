# src/tact/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The lifecycle and day-close engines depend on Protocols instead of concrete
implementations, so the storage backend and sync channel are swappable and
tests can run against fakes.
"""

from collections.abc import Callable
from datetime import date
from typing import Any, Protocol

Record = dict[str, Any]
# Persisted shape: plain JSON-compatible dict keyed by "id".

SyncMessage = dict[str, Any]
SyncHandler = Callable[[SyncMessage], None]


class StorageEngine(Protocol):
    """Async CRUD + indexed queries over named record collections."""

    name: str

    async def put(self, collection: str, record: Record) -> Record: ...
    async def get(self, collection: str, record_id: str) -> Record | None: ...
    async def delete(self, collection: str, record_id: str) -> None: ...
    async def all(self, collection: str) -> list[Record]: ...
    async def query_by_index(self, collection: str, index_name: str, key: Any) -> list[Record]: ...
    async def clear(self, collection: str) -> None: ...
    async def close(self) -> None: ...


class SyncChannel(Protocol):
    """
    Best-effort broadcast to other live instances.

    A channel never delivers a message back to the instance that sent it.
    """

    available: bool

    def notify(self, message: SyncMessage) -> None: ...
    def on_notify(self, handler: SyncHandler) -> None: ...
    def close(self) -> None: ...


class Clock(Protocol):
    def now_ms(self) -> int: ...
    def today(self) -> date: ...
