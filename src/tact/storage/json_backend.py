# src/tact/storage/json_backend.py

"""Fallback storage: one serialized JSON document holding a flat list per collection.

Used when SQLite is unavailable. Every call parses the document, works on
the lists and serializes it back, so stored state is always the serialized
form and callers only ever see copies. Index queries are linear scans with
the same matching rules as the indexed backend.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ..core.ports import Record
from ..errors import StorageUnavailable
from .schema import COLLECTIONS, check_collection, get_index, normalize_query, record_matches, require_id

logger = logging.getLogger(__name__)

State = dict[str, list[Record]]


class JsonBackend:
    """
    Flat fallback backend.

    path=None keeps the serialized document in memory (process lifetime only);
    otherwise it is written atomically to `path` after every mutation.
    """

    name = "json"

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._blob = "{}"
        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                if self._path.exists():
                    json.loads(self._path.read_text("utf-8"))
            except (OSError, ValueError) as e:
                raise StorageUnavailable(f"cannot use {self._path}: {e}") from e
        logger.info("JsonBackend ready path=%s", self._path or "<memory>")

    def _load(self) -> State:
        if self._path is None:
            raw = self._blob
        elif self._path.exists():
            raw = self._path.read_text("utf-8")
        else:
            raw = "{}"
        data = json.loads(raw or "{}")
        if not isinstance(data, dict):
            data = {}
        return {name: list(data.get(name) or []) for name in COLLECTIONS}

    def _save(self, state: State) -> None:
        json_str = json.dumps(state, ensure_ascii=False)
        if self._path is None:
            self._blob = json_str
            return
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json_str, "utf-8")
        os.replace(tmp, self._path)

    async def put(self, collection: str, record: Record) -> Record:
        check_collection(collection)
        rid = require_id(record)
        state = self._load()
        items = state[collection]
        stored = json.loads(json.dumps(record, ensure_ascii=False))
        for i, existing in enumerate(items):
            if existing.get("id") == rid:
                items[i] = stored
                break
        else:
            items.append(stored)
        self._save(state)
        return record

    async def get(self, collection: str, record_id: str) -> Record | None:
        check_collection(collection)
        for item in self._load()[collection]:
            if item.get("id") == record_id:
                return item
        return None

    async def delete(self, collection: str, record_id: str) -> None:
        check_collection(collection)
        state = self._load()
        before = len(state[collection])
        state[collection] = [x for x in state[collection] if x.get("id") != record_id]
        if len(state[collection]) != before:
            self._save(state)

    async def all(self, collection: str) -> list[Record]:
        check_collection(collection)
        return self._load()[collection]

    async def query_by_index(self, collection: str, index_name: str, key: Any) -> list[Record]:
        spec = get_index(collection, index_name)
        query = normalize_query(spec, key)
        if query is None:
            return []
        return [r for r in self._load()[collection] if record_matches(spec, r, query)]

    async def clear(self, collection: str) -> None:
        check_collection(collection)
        state = self._load()
        state[collection] = []
        self._save(state)

    async def close(self) -> None:
        return
