# src/tact/sync/file_channel.py

"""
Cross-process sync channel for instances on the same device.

Each instance owns one signal file `<instance_id>.signal` in a shared
directory and rewrites it atomically on every notify. A watchdog observer
reports changes to the other instances' files; the file content is the
message. Only write events are acted on, and a signal file whose inode,
mtime and size are unchanged since the last delivery is skipped, so reading
a signal never produces another one.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ..core.ports import SyncHandler, SyncMessage
from ..errors import SyncUnavailable
from .bus import _HandlerList

logger = logging.getLogger(__name__)

SIGNAL_SUFFIX = ".signal"
WATCHER_THREAD_NAME = "tact-sync-watcher"


class _SignalHandler(FileSystemEventHandler):
    """Forwards write events (created, modified, moved) to the channel."""

    def __init__(self, channel: FileSignalChannel) -> None:
        self.channel = channel

    def _forward(self, path) -> None:
        self.channel._handle_path(Path(os.fsdecode(path)))

    def on_created(self, fs_event) -> None:
        if not fs_event.is_directory:
            self._forward(fs_event.src_path)

    def on_modified(self, fs_event) -> None:
        if not fs_event.is_directory:
            self._forward(fs_event.src_path)

    def on_moved(self, fs_event) -> None:
        if not fs_event.is_directory:
            self._forward(fs_event.dest_path)


class FileSignalChannel:
    available = True

    def __init__(self, sync_dir: str | Path, *, start: bool = True) -> None:
        self.instance_id = uuid.uuid4().hex
        self._dir = Path(sync_dir)
        self._handlers = _HandlerList()
        self._observer = None
        self._seen: dict[str, tuple[int, int, int]] = {}
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            if start:
                observer = Observer()
                observer.schedule(_SignalHandler(self), str(self._dir), recursive=False)
                observer.name = WATCHER_THREAD_NAME
                observer.daemon = True
                observer.start()
                self._observer = observer
        except Exception as e:
            raise SyncUnavailable(f"cannot watch {self._dir}: {e}") from e
        logger.info("FileSignalChannel ready dir=%s id=%s", self._dir, self.instance_id)

    @property
    def signal_path(self) -> Path:
        return self._dir / f"{self.instance_id}{SIGNAL_SUFFIX}"

    def notify(self, message: SyncMessage) -> None:
        target = self.signal_path
        tmp = target.with_suffix(".tmp")
        tmp.write_text(json.dumps(message), "utf-8")
        os.replace(tmp, target)

    def on_notify(self, handler: SyncHandler) -> None:
        self._handlers.add(handler)

    def _handle_path(self, path: Path) -> None:
        if path.suffix != SIGNAL_SUFFIX or path.stem == self.instance_id:
            return
        try:
            st = path.stat()
            stamp = (st.st_ino, st.st_mtime_ns, st.st_size)
            if self._seen.get(path.stem) == stamp:
                return
            message = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError):
            # Peer is mid-write or already gone; its next signal will land.
            logger.debug("Unreadable signal file %s", path)
            return
        if not isinstance(message, dict):
            return
        self._seen[path.stem] = stamp
        logger.debug("Signal from %s: %r", path.stem, message)
        self._handlers.deliver(message)

    def close(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=2.0)
            self._observer = None
        try:
            self.signal_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Could not remove %s", self.signal_path, exc_info=True)
