# tests/test_sync_bus.py

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from tact.sync.bus import LocalHub, SyncBus, UnavailableChannel, open_channel
from tact.sync.file_channel import FileSignalChannel

from .fakes import RecordingChannel


@pytest.mark.asyncio
async def test_local_hub_broadcasts_to_peers_only() -> None:
    hub = LocalHub()
    a = SyncBus(hub.channel())
    b = SyncBus(hub.channel())
    got = {"a": 0, "b": 0}

    def on_a() -> None:
        got["a"] += 1

    def on_b() -> None:
        got["b"] += 1

    a.on_refresh(on_a)
    b.on_refresh(on_b)

    a.notify_refresh()
    await asyncio.sleep(0)

    assert got == {"a": 0, "b": 1}


@pytest.mark.asyncio
async def test_async_refresh_handler_is_scheduled() -> None:
    hub = LocalHub()
    a = SyncBus(hub.channel())
    b = SyncBus(hub.channel())
    done = asyncio.Event()

    async def reload() -> None:
        done.set()

    b.on_refresh(reload)
    a.notify_refresh()

    await asyncio.wait_for(done.wait(), timeout=1.0)


def test_non_refresh_messages_are_ignored() -> None:
    channel = RecordingChannel()
    bus = SyncBus(channel)
    calls: list[int] = []
    bus.on_refresh(lambda: calls.append(1))

    channel.receive({"type": "delta", "task": {"id": "x"}})
    channel.receive({"hello": "world"})
    assert calls == []

    channel.receive({"type": "refresh"})
    assert calls == [1]


def test_disabled_bus_does_not_notify_but_still_listens() -> None:
    channel = RecordingChannel()
    bus = SyncBus(channel, enabled=False)
    calls: list[int] = []
    bus.on_refresh(lambda: calls.append(1))

    bus.notify_refresh()
    assert channel.sent == []

    channel.receive({"type": "refresh"})
    assert calls == [1]

    bus.enabled = True
    bus.notify_refresh()
    assert channel.sent == [{"type": "refresh"}]


def test_unavailable_channel_is_a_no_op() -> None:
    bus = SyncBus(UnavailableChannel())
    assert bus.available is False
    bus.on_refresh(lambda: None)
    bus.notify_refresh()
    bus.close()


def test_notify_failure_never_reaches_the_writer() -> None:
    class Broken(RecordingChannel):
        def notify(self, message) -> None:
            raise OSError("disk gone")

    bus = SyncBus(Broken())
    bus.notify_refresh()


@pytest.mark.asyncio
async def test_crashing_handler_does_not_stop_others() -> None:
    hub = LocalHub()
    a = SyncBus(hub.channel())
    b = SyncBus(hub.channel())
    calls: list[str] = []

    def boom() -> None:
        raise RuntimeError("boom")

    b.on_refresh(boom)
    b.on_refresh(lambda: calls.append("ok"))

    a.notify_refresh()
    await asyncio.sleep(0)

    assert calls == ["ok"]


def test_open_channel_variants(tmp_path: Path) -> None:
    off = open_channel(SimpleNamespace(sync_channel="off"))
    assert off.available is False

    hub = LocalHub()
    local = open_channel(SimpleNamespace(sync_channel="local"), hub=hub)
    assert local.available is True

    # A regular file where the directory should be makes the watcher unusable.
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", "utf-8")
    degraded = open_channel(SimpleNamespace(sync_channel="file", sync_dir=blocker / "sync"))
    assert degraded.available is False


def test_file_channel_delivers_peer_signals_only(tmp_path: Path) -> None:
    sync_dir = tmp_path / "sync"
    sender = FileSignalChannel(sync_dir, start=False)
    receiver = FileSignalChannel(sync_dir, start=False)
    got: list[dict] = []
    receiver.on_notify(got.append)

    sender.notify({"type": "refresh"})
    assert json.loads(sender.signal_path.read_text("utf-8")) == {"type": "refresh"}

    # Own signal, foreign files and temp files are ignored.
    receiver.notify({"type": "refresh"})
    receiver._handle_path(receiver.signal_path)
    receiver._handle_path(sync_dir / "notes.txt")
    receiver._handle_path(sender.signal_path.with_suffix(".tmp"))
    assert got == []

    receiver._handle_path(sender.signal_path)
    assert got == [{"type": "refresh"}]

    sender.close()
    assert not sender.signal_path.exists()
    receiver._handle_path(sender.signal_path)
    assert len(got) == 1
    receiver.close()


def test_file_channel_skips_a_signal_it_already_delivered(tmp_path: Path) -> None:
    sync_dir = tmp_path / "sync"
    sender = FileSignalChannel(sync_dir, start=False)
    receiver = FileSignalChannel(sync_dir, start=False)
    got: list[dict] = []
    receiver.on_notify(got.append)

    sender.notify({"type": "refresh"})
    # Opening and reading the file again must not count as a new signal.
    for _ in range(3):
        receiver._handle_path(sender.signal_path)
    assert len(got) == 1

    sender.notify({"type": "refresh"})
    receiver._handle_path(sender.signal_path)
    assert len(got) == 2

    sender.close()
    receiver.close()


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.02)


@pytest.mark.asyncio
async def test_file_channel_with_live_watchers_refreshes_once_per_notify(tmp_path: Path) -> None:
    sync_dir = tmp_path / "sync"
    a = SyncBus(FileSignalChannel(sync_dir))
    b = SyncBus(FileSignalChannel(sync_dir))
    refreshes = {"a": 0, "b": 0}

    def on_a() -> None:
        refreshes["a"] += 1

    def on_b() -> None:
        refreshes["b"] += 1

    a.on_refresh(on_a)
    b.on_refresh(on_b)
    try:
        a.notify_refresh()
        await _wait_for(lambda: refreshes["b"] >= 1)

        # Let the watchers settle; reads of the signal file must stay quiet.
        await asyncio.sleep(0.5)
        assert refreshes == {"a": 0, "b": 1}

        a.notify_refresh()
        await _wait_for(lambda: refreshes["b"] >= 2)
        await asyncio.sleep(0.3)
        assert refreshes == {"a": 0, "b": 2}
    finally:
        a.close()
        b.close()


@pytest.mark.asyncio
async def test_failing_async_handler_is_logged_and_released(caplog) -> None:
    hub = LocalHub()
    a = SyncBus(hub.channel())
    b = SyncBus(hub.channel())
    started = asyncio.Event()

    async def reload() -> None:
        started.set()
        raise RuntimeError("reload failed")

    b.on_refresh(reload)
    a.notify_refresh()

    await asyncio.wait_for(started.wait(), timeout=1.0)
    await _wait_for(lambda: b.pending == 0)

    assert "Async refresh handler failed." in caplog.text
    assert "reload failed" in caplog.text


@pytest.mark.asyncio
async def test_close_cancels_running_async_handlers() -> None:
    hub = LocalHub()
    a = SyncBus(hub.channel())
    b = SyncBus(hub.channel())
    started = asyncio.Event()
    cancelled: list[bool] = []

    async def slow_reload() -> None:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    b.on_refresh(slow_reload)
    a.notify_refresh()
    await asyncio.wait_for(started.wait(), timeout=1.0)
    assert b.pending == 1

    b.close()
    await _wait_for(lambda: b.pending == 0)

    assert cancelled == [True]
