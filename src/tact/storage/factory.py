# src/tact/storage/factory.py

from __future__ import annotations

import logging

from ..core.ports import StorageEngine
from ..errors import StorageUnavailable
from .json_backend import JsonBackend
from .sqlite_backend import SqliteBackend

logger = logging.getLogger(__name__)


def open_storage(settings) -> StorageEngine:
    """
    Pick the storage backend once, at startup.

    - auto:   SQLite at settings.db_path; if it cannot be opened, the JSON
              fallback at settings.fallback_path; if that fails as well, an
              in-memory JSON document.
    - json:   the JSON fallback only.
    - memory: in-memory JSON document (nothing survives the process).

    Never raises: a degraded backend is better than no tracker at all.
    """
    mode = str(getattr(settings, "storage_backend", "auto"))

    if mode == "memory":
        return JsonBackend(None)

    if mode == "auto":
        try:
            return SqliteBackend(settings.db_path)
        except StorageUnavailable as e:
            logger.warning("Indexed storage unavailable, using fallback: %s", e)

    try:
        return JsonBackend(settings.fallback_path)
    except StorageUnavailable as e:
        logger.warning("Fallback file unavailable, keeping data in memory only: %s", e)
        return JsonBackend(None)
