# src/tact/sync/bus.py

from __future__ import annotations

"""
Cross-instance "state changed, re-query" signal.

Writers call SyncBus.notify_refresh() after their write is durable; other
live instances get their refresh handlers called and re-run their reads.
No delta is ever transmitted, so there is nothing to order or merge.

Delivery is best-effort: a missing channel, a peer that is not listening or a
crashing handler never affects the writer.
"""

import asyncio
import inspect
import logging
import uuid
from collections.abc import Callable
from typing import Any

from ..core.ports import SyncChannel, SyncHandler, SyncMessage
from ..errors import SyncUnavailable

logger = logging.getLogger(__name__)

REFRESH: SyncMessage = {"type": "refresh"}


def is_refresh(message: Any) -> bool:
    return isinstance(message, dict) and message.get("type") == "refresh"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class _HandlerList:
    """Handlers of one channel, dispatched on the loop the channel was opened on."""

    def __init__(self) -> None:
        self._handlers: list[SyncHandler] = []
        self._loop = _running_loop()

    def add(self, handler: SyncHandler) -> None:
        self._handlers.append(handler)

    def deliver(self, message: SyncMessage) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._dispatch, dict(message))
        else:
            self._dispatch(dict(message))

    def _dispatch(self, message: SyncMessage) -> None:
        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception:
                logger.exception("Sync handler crashed.")


class UnavailableChannel:
    """No cross-instance channel: single-instance behaviour."""

    available = False

    def notify(self, message: SyncMessage) -> None:
        return

    def on_notify(self, handler: SyncHandler) -> None:
        return

    def close(self) -> None:
        return


class LocalHub:
    """Rendezvous for LocalChannels of instances living in the same process."""

    def __init__(self) -> None:
        self._members: list[LocalChannel] = []

    def channel(self) -> LocalChannel:
        ch = LocalChannel(self)
        self._members.append(ch)
        return ch

    def _broadcast(self, sender: LocalChannel, message: SyncMessage) -> None:
        for member in list(self._members):
            if member is not sender:
                member._handlers.deliver(message)

    def _leave(self, member: LocalChannel) -> None:
        if member in self._members:
            self._members.remove(member)


class LocalChannel:
    available = True

    def __init__(self, hub: LocalHub) -> None:
        self.instance_id = uuid.uuid4().hex
        self._hub = hub
        self._handlers = _HandlerList()

    def notify(self, message: SyncMessage) -> None:
        self._hub._broadcast(self, message)

    def on_notify(self, handler: SyncHandler) -> None:
        self._handlers.add(handler)

    def close(self) -> None:
        self._hub._leave(self)


class SyncBus:
    """
    The only sync surface the rest of the app sees.

    `enabled` mirrors the user's "broadcast sync" switch: when off, local
    writes stop notifying peers (incoming refreshes are still honoured).
    """

    def __init__(self, channel: SyncChannel, *, enabled: bool = True) -> None:
        self._channel = channel
        self.enabled = enabled
        self._pending: set[asyncio.Task] = set()

    @property
    def available(self) -> bool:
        return bool(getattr(self._channel, "available", False))

    def notify_refresh(self) -> None:
        if not self.enabled or not self.available:
            return
        try:
            self._channel.notify(REFRESH)
        except Exception:
            logger.warning("Sync notify failed; peers will refresh on their next read.", exc_info=True)

    def on_refresh(self, handler: Callable[[], Any]) -> None:
        """Register a zero-arg handler (plain or async) for peer refresh signals."""

        def _on_message(message: SyncMessage) -> None:
            if not is_refresh(message):
                logger.debug("Ignoring sync message %r", message)
                return
            result = handler()
            if inspect.isawaitable(result):
                loop = _running_loop()
                if loop is None:
                    logger.warning("Async refresh handler dropped: no running loop.")
                    if inspect.iscoroutine(result):
                        result.close()
                    return
                task = loop.create_task(result)
                self._pending.add(task)
                task.add_done_callback(self._reap)

        self._channel.on_notify(_on_message)

    def _reap(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async refresh handler failed.", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        try:
            self._channel.close()
        except Exception:
            logger.debug("Sync channel close failed.", exc_info=True)


def open_channel(settings, *, hub: LocalHub | None = None) -> SyncChannel:
    """
    Open the configured channel, degrading to UnavailableChannel.

    Must be called from inside the event loop that should run the handlers.
    """
    kind = str(getattr(settings, "sync_channel", "file"))

    if kind == "off":
        return UnavailableChannel()

    if kind == "local":
        return (hub or LocalHub()).channel()

    from .file_channel import FileSignalChannel

    try:
        return FileSignalChannel(settings.sync_dir)
    except SyncUnavailable as e:
        logger.warning("Cross-instance sync unavailable: %s", e)
        return UnavailableChannel()
