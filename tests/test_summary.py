# tests/test_summary.py

from __future__ import annotations

from datetime import timezone

from tact.day.summary import done_line, header, render_summary, rolled_line
from tact.tasks.task_models import Task, TaskStatus


def _task(title: str, **fields) -> Task:
    fields.setdefault("status", TaskStatus.TODAY)
    return Task(id=title.lower(), title=title, created_at=0, **fields)


def test_header_adds_iso_week_on_mondays_only() -> None:
    assert header("2024-06-03", markdown=True) == "# 2024-06-03 — Daily Summary — Week 23"
    assert header("2024-06-04", markdown=False) == "2024-06-04 — Daily Summary"


def test_done_line_prefers_actual_over_estimate() -> None:
    t = _task(
        "Review PR",
        status=TaskStatus.DONE,
        completed_at=3_600_000,  # 01:00:00 UTC
        actual_min=20,
        estimate_min=45,
        project_id="core",
        tags=["code", "team"],
    )
    line = done_line(t, with_times=True, markdown=True, tz=timezone.utc)
    assert line == "- Review PR [20m]  — 01:00:00  #core @code @team"

    t.actual_min = 0
    assert done_line(t, with_times=False, markdown=False) == "Review PR [~45m]  #core @code @team"


def test_rolled_line_is_trimmed() -> None:
    assert rolled_line(_task("Plain"), markdown=False) == "Plain"
    assert rolled_line(_task("Big", rollover_count=2, estimate_min=90), markdown=True) == "- Big ↩︎2 ~90m"


def test_render_summary_plain_layout() -> None:
    done = [_task("C", status=TaskStatus.DONE, completed_at=1)]
    rolled = [_task("A", rollover_count=1, estimate_min=30)]

    text = render_summary("2024-12-31", done, rolled, with_times=False, markdown=False)

    assert text == (
        "2024-12-31 — Daily Summary\n"
        "\n"
        "Done (1)\n"
        "C\n"
        "\n"
        "Rolled over to 2025-01-01 (1)\n"
        "A ↩︎1 ~30m\n"
    )


def test_render_summary_is_pure() -> None:
    done = [_task("C", status=TaskStatus.DONE, completed_at=7_200_000)]
    rolled = [_task("A", rollover_count=1)]
    snapshot = [(t.title, t.rollover_count, t.completed_at) for t in done + rolled]

    first = render_summary("2024-06-05", done, rolled, tz=timezone.utc)
    second = render_summary("2024-06-05", done, rolled, tz=timezone.utc)

    assert first == second
    assert [(t.title, t.rollover_count, t.completed_at) for t in done + rolled] == snapshot


def test_render_summary_empty_day() -> None:
    text = render_summary("2024-06-05", [], [], markdown=True)
    assert "## Done (0)" in text
    assert "## Rolled over to 2024-06-06 (0)" in text
