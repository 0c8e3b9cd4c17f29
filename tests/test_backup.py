# tests/test_backup.py

from __future__ import annotations

from pathlib import Path

import pytest

from tact import backup
from tact.errors import ImportInvalid
from tact.storage.schema import DAYS, TASKS
from tact.tasks.task_models import new_task

DAY = "2024-06-03"


async def _seed(ctx) -> list[str]:
    ids = []
    for title in ("A", "B"):
        task = new_task(title, now_ms=ctx.clock.now_ms(), today=DAY, day_key=DAY, tags=["x"])
        await ctx.lifecycle.create(task)
        ids.append(task.id)
    await ctx.lifecycle.complete(ids[0])
    return ids


@pytest.mark.asyncio
async def test_export_import_round_trip(ctx, channel, tmp_path: Path) -> None:
    ids = await _seed(ctx)
    payload = await backup.export_payload(ctx.storage, ctx.events, ctx.clock)
    assert set(payload) == {"exportedAt", "tasks", "events"}
    ts = [e["ts"] for e in payload["events"]]
    assert ts == sorted(ts)

    path = backup.write_payload(tmp_path / "out" / "export.json", payload)
    await backup.clear_all(ctx.storage, ctx.bus)
    assert await ctx.lifecycle.all_tasks() == []

    sent_before = channel.refresh_count
    n_tasks, n_events = await backup.import_payload(ctx.storage, ctx.bus, backup.read_payload(path))

    assert (n_tasks, n_events) == (2, 3)
    assert channel.refresh_count == sent_before + 1
    assert await ctx.storage.all(TASKS) == payload["tasks"]
    assert [e.to_record() for e in await ctx.events.all()] == payload["events"]
    # Indexes are rebuilt for imported records.
    tagged = await ctx.storage.query_by_index(TASKS, "byTag", "x")
    assert sorted(r["id"] for r in tagged) == sorted(ids)


@pytest.mark.asyncio
async def test_import_replaces_existing_state(ctx) -> None:
    await _seed(ctx)
    await ctx.day_close.close_day()
    assert await ctx.storage.all(DAYS) != []

    incoming = {"tasks": [{"id": "only", "title": "Only", "status": "backlog"}], "events": []}
    await backup.import_payload(ctx.storage, ctx.bus, incoming)

    assert [t.id for t in await ctx.lifecycle.all_tasks()] == ["only"]
    assert await ctx.events.all() == []
    assert await ctx.storage.all(DAYS) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        [],
        {"tasks": []},
        {"tasks": {}, "events": []},
        {"tasks": [{"title": "no id"}], "events": []},
        {"tasks": [], "events": ["nope"]},
    ],
)
async def test_invalid_payload_is_rejected_before_any_write(ctx, data) -> None:
    await _seed(ctx)
    before_tasks = await ctx.storage.all(TASKS)
    before_events = len(await ctx.events.all())

    with pytest.raises(ImportInvalid):
        await backup.import_payload(ctx.storage, ctx.bus, data)

    assert await ctx.storage.all(TASKS) == before_tasks
    assert len(await ctx.events.all()) == before_events


def test_read_payload_reports_broken_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{", "utf-8")
    with pytest.raises(ImportInvalid):
        backup.read_payload(broken)
    with pytest.raises(ImportInvalid):
        backup.read_payload(tmp_path / "missing.json")
