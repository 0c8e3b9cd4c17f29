# src/tact/day/summary.py

"""
End-of-day summary text.

Pure: the output depends only on the day key, the two task lists, the flags
and the timezone used to print completion times.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import tzinfo

from ..core.clock import local_time_of, next_day_key, parse_day_key
from ..tasks.task_models import Task


def header(day: str, *, markdown: bool) -> str:
    d = parse_day_key(day)
    week = f" — Week {d.isocalendar()[1]}" if d.weekday() == 0 else ""
    text = f"{day} — Daily Summary{week}"
    return f"# {text}" if markdown else text


def done_line(task: Task, *, with_times: bool, markdown: bool, tz: tzinfo | None = None) -> str:
    if task.actual_min:
        dur = f" [{task.actual_min}m]"
    elif task.estimate_min:
        dur = f" [~{task.estimate_min}m]"
    else:
        dur = ""
    when = f"  — {local_time_of(task.completed_at, tz)}" if with_times and task.completed_at else ""
    project = f"  #{task.project_id}" if task.project_id else ""
    tags = " ".join(f"@{t}" for t in task.tags)
    bullet = "- " if markdown else ""
    return f"{bullet}{task.title}{dur}{when}{project} {tags}".strip()


def rolled_line(task: Task, *, markdown: bool) -> str:
    info: list[str] = []
    if task.rollover_count:
        info.append(f"↩︎{task.rollover_count}")
    if task.estimate_min:
        info.append(f"~{task.estimate_min}m")
    bullet = "- " if markdown else ""
    return f"{bullet}{task.title} {' '.join(info)}".strip()


def render_summary(
    day: str,
    done: Sequence[Task],
    unfinished: Sequence[Task],
    *,
    with_times: bool = True,
    markdown: bool = True,
    tz: tzinfo | None = None,
) -> str:
    h2 = "## " if markdown else ""
    lines = [header(day, markdown=markdown), ""]

    lines.append(f"{h2}Done ({len(done)})")
    lines.extend(done_line(t, with_times=with_times, markdown=markdown, tz=tz) for t in done)
    lines.append("")

    lines.append(f"{h2}Rolled over to {next_day_key(day)} ({len(unfinished)})")
    lines.extend(rolled_line(t, markdown=markdown) for t in unfinished)
    lines.append("")

    return "\n".join(lines)
