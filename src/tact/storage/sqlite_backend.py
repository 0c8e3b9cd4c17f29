# src/tact/storage/sqlite_backend.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..core.ports import Record
from ..errors import StorageUnavailable
from .schema import (
    COLLECTIONS,
    check_collection,
    get_index,
    index_keys,
    normalize_query,
    require_id,
)

logger = logging.getLogger(__name__)


def _encode_key(parts: tuple[Any, ...]) -> str:
    return json.dumps(list(parts), ensure_ascii=False, separators=(",", ":"))


class SqliteBackend:
    """
    Indexed storage backend on SQLite.

    Records are stored whole as JSON, keyed by (collection, id). Secondary
    indexes live in `index_entries`, one row per (index, key, record); the
    rows are rebuilt on every put, so a multi-entry index holds each distinct
    value once.

    Thread-safety:
    - each call opens its own SQLite connection and runs in a worker thread
    """

    name = "sqlite"

    def __init__(self, db_path: str | Path = "tact.sqlite3") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"cannot open {self._db_path}: {e}") from e
        logger.info("SqliteBackend ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    body TEXT NOT NULL,
                    UNIQUE (collection, id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS index_entries (
                    collection TEXT NOT NULL,
                    index_name TEXT NOT NULL,
                    key TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    PRIMARY KEY (collection, index_name, key, record_id)
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_record "
                "ON index_entries(collection, record_id)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _loads(rows: list[sqlite3.Row]) -> list[Record]:
        return [json.loads(r["body"]) for r in rows]

    # ---- sync bodies (run in a worker thread) ----

    def _put_sync(self, collection: str, record: Record) -> None:
        rid = require_id(record)
        body = json.dumps(record, ensure_ascii=False)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO records(collection, id, body) VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET body = excluded.body
                """,
                (collection, rid, body),
            )
            cur.execute(
                "DELETE FROM index_entries WHERE collection = ? AND record_id = ?",
                (collection, rid),
            )
            entries = [
                (collection, spec.name, _encode_key(key), rid)
                for spec in COLLECTIONS[collection]
                for key in index_keys(spec, record)
            ]
            if entries:
                cur.executemany(
                    "INSERT OR IGNORE INTO index_entries(collection, index_name, key, record_id) "
                    "VALUES (?, ?, ?, ?)",
                    entries,
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _get_sync(self, collection: str, record_id: str) -> Record | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT body FROM records WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
            return json.loads(row["body"]) if row else None
        finally:
            conn.close()

    def _delete_sync(self, collection: str, record_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "DELETE FROM records WHERE collection = ? AND id = ?", (collection, record_id)
            )
            conn.execute(
                "DELETE FROM index_entries WHERE collection = ? AND record_id = ?",
                (collection, record_id),
            )
            conn.commit()
        finally:
            conn.close()

    def _all_sync(self, collection: str) -> list[Record]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT body FROM records WHERE collection = ? ORDER BY seq ASC", (collection,)
            ).fetchall()
            return self._loads(rows)
        finally:
            conn.close()

    def _query_sync(self, collection: str, index_name: str, key: str) -> list[Record]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT r.body
                FROM index_entries e
                JOIN records r ON r.collection = e.collection AND r.id = e.record_id
                WHERE e.collection = ? AND e.index_name = ? AND e.key = ?
                ORDER BY r.seq ASC
                """,
                (collection, index_name, key),
            ).fetchall()
            return self._loads(rows)
        finally:
            conn.close()

    def _clear_sync(self, collection: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM records WHERE collection = ?", (collection,))
            conn.execute("DELETE FROM index_entries WHERE collection = ?", (collection,))
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    async def put(self, collection: str, record: Record) -> Record:
        check_collection(collection)
        await asyncio.to_thread(self._put_sync, collection, record)
        return record

    async def get(self, collection: str, record_id: str) -> Record | None:
        check_collection(collection)
        return await asyncio.to_thread(self._get_sync, collection, record_id)

    async def delete(self, collection: str, record_id: str) -> None:
        check_collection(collection)
        await asyncio.to_thread(self._delete_sync, collection, record_id)

    async def all(self, collection: str) -> list[Record]:
        check_collection(collection)
        return await asyncio.to_thread(self._all_sync, collection)

    async def query_by_index(self, collection: str, index_name: str, key: Any) -> list[Record]:
        spec = get_index(collection, index_name)
        query = normalize_query(spec, key)
        if query is None:
            return []
        return await asyncio.to_thread(self._query_sync, collection, index_name, _encode_key(query))

    async def clear(self, collection: str) -> None:
        check_collection(collection)
        await asyncio.to_thread(self._clear_sync, collection)

    async def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return
