# src/tact/storage/schema.py

"""
Collections and secondary indexes shared by both storage backends.

Index semantics (identical for every backend):
- a record is indexed only if every key component is a string or a number;
- composite keys match by equality on all components;
- multi-entry indexes index each distinct element of a list field, and a
  query returns the record once even if it holds the value several times.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from ..core.ports import Record

TASKS = "tasks"
EVENTS = "events"
DAYS = "days"


@dataclass(frozen=True, slots=True)
class IndexSpec:
    name: str
    key_path: tuple[str, ...]
    multi_entry: bool = False

    @property
    def composite(self) -> bool:
        return len(self.key_path) > 1


COLLECTIONS: dict[str, tuple[IndexSpec, ...]] = {
    TASKS: (
        IndexSpec("byDayStatus", ("dayKey", "status")),
        IndexSpec("byCompletedAt", ("completedAt",)),
        IndexSpec("byProject", ("projectId",)),
        IndexSpec("byTag", ("tags",), multi_entry=True),
        IndexSpec("byCreatedAt", ("createdAt",)),
    ),
    EVENTS: (
        IndexSpec("byTask", ("taskId",)),
        IndexSpec("byTs", ("ts",)),
    ),
    DAYS: (IndexSpec("byClosedAt", ("closedAt",)),),
}


def check_collection(collection: str) -> tuple[IndexSpec, ...]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"unknown collection: {collection!r}") from None


def get_index(collection: str, index_name: str) -> IndexSpec:
    for spec in check_collection(collection):
        if spec.name == index_name:
            return spec
    raise ValueError(f"unknown index {index_name!r} on {collection!r}")


def _scalar_key(value: Any) -> Any:
    """Normalize one key component; None means 'not indexable'."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    if isinstance(value, (int, str)):
        return value
    return None


def normalize_query(spec: IndexSpec, key: Any) -> tuple[Any, ...] | None:
    """Turn a caller's query key into a tuple, or None when it can never match."""
    if spec.composite:
        if not isinstance(key, (list, tuple)) or len(key) != len(spec.key_path):
            return None
        parts = tuple(_scalar_key(k) for k in key)
    else:
        parts = (_scalar_key(key),)
    if any(p is None for p in parts):
        return None
    return parts


def index_keys(spec: IndexSpec, record: Record) -> Iterator[tuple[Any, ...]]:
    """Yield every key under which `record` appears in `spec`."""
    if spec.multi_entry:
        values = record.get(spec.key_path[0])
        if not isinstance(values, list):
            values = [values]
        seen: set[Any] = set()
        for v in values:
            k = _scalar_key(v)
            if k is None or k in seen:
                continue
            seen.add(k)
            yield (k,)
        return

    parts = tuple(_scalar_key(record.get(field)) for field in spec.key_path)
    if any(p is None for p in parts):
        return
    yield parts


def record_matches(spec: IndexSpec, record: Record, query: tuple[Any, ...]) -> bool:
    return any(k == query for k in index_keys(spec, record))


def require_id(record: Record) -> str:
    rid = record.get("id") if isinstance(record, dict) else None
    if not isinstance(rid, str) or not rid:
        raise ValueError("record must be a dict with a non-empty string 'id'")
    return rid
