# src/tact/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from .. import backup
from ..core.clock import today_key
from ..core.state import AppContext
from ..errors import NotFound, TactError
from ..tasks.board import load_board
from ..tasks.task_models import Task, TaskStatus, new_task

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppContext, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

CONFIRM_WORDS = ("yes", "y", "confirm")


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        ctx: AppContext,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(ctx, args, emit)
        except TactError as e:
            logger.debug("Command /%s refused: %s", name, e)
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _time_of(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000).strftime("%Y-%m-%d %H:%M")


def format_task(task: Task) -> str:
    badges: list[str] = []
    if task.project_id:
        badges.append(f"#{task.project_id}")
    badges.extend(f"@{t}" for t in task.tags)
    if task.estimate_min:
        badges.append(f"~{task.estimate_min}m")
    if task.rollover_count:
        badges.append(f"↩︎{task.rollover_count}")
    if task.status == TaskStatus.IN_PROGRESS:
        badges.append("▶ in-progress")
    if task.blocked_reason:
        badges.append("⛔ blocked")
    tail = f"  {' '.join(badges)}" if badges else ""
    return f"[{task.id[:8]}] {task.title}{tail}"


async def resolve_task(ctx: AppContext, ref: str) -> Task:
    """Exact id, or a unique id prefix (as printed by /list)."""
    task = await ctx.lifecycle.get(ref)
    if task is not None:
        return task
    hits = [t for t in await ctx.lifecycle.all_tasks() if t.id.startswith(ref)]
    if len(hits) == 1:
        return hits[0]
    if not hits:
        raise NotFound(f"no task matching '{ref}'")
    raise NotFound(f"'{ref}' matches {len(hits)} tasks; use more characters")


async def cmd_help(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_list(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list          -> today's board
    /list <text>   -> filtered by title/notes/tags/project
    """
    day = today_key(ctx.clock)
    board = await load_board(
        ctx.lifecycle, day, available_hours=ctx.available_hours, query=" ".join(args)
    )
    lines = [
        f"Today: {day}  WIP {board.active_count}/{board.wip_limit}  est {board.estimate_total}m",
    ]
    alert = board.budget_alert()
    if alert:
        lines.append(alert)
    lines.append(f"To do ({len(board.todo)}):")
    lines.extend(f"  {format_task(t)}" for t in board.todo)
    lines.append(f"Done ({len(board.done)}):")
    lines.extend(f"  {format_task(t)}" for t in board.done)
    return "\n".join(lines)


async def cmd_add(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"
    day = today_key(ctx.clock)
    dup = await ctx.lifecycle.find_duplicate(title)
    task = new_task(title, now_ms=ctx.clock.now_ms(), today=day, day_key=day)
    await ctx.lifecycle.create(task, source="console")
    note = f" (duplicate of [{dup.id[:8]}])" if dup else ""
    return f"Added {format_task(task)}{note}"


async def cmd_start(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /start <id>"
    task = await ctx.lifecycle.start((await resolve_task(ctx, args[0])).id)
    return f"Started {format_task(task)}"


async def cmd_done(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <id>"
    task = await ctx.lifecycle.complete((await resolve_task(ctx, args[0])).id)
    return f"Completed {format_task(task)}"


async def cmd_defer(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/defer <id> [reason...] -> back to the end of today's list"""
    if not args:
        return "Usage: /defer <id> [reason]"
    reason = " ".join(args[1:]).strip() or None
    task = await ctx.lifecycle.defer((await resolve_task(ctx, args[0])).id, reason)
    return f"Deferred {format_task(task)}"


async def cmd_undo(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /undo <id>"
    task = await ctx.lifecycle.undo((await resolve_task(ctx, args[0])).id)
    return f"Reopened {format_task(task)}"


async def cmd_rm(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /rm <id> yes"
    task = await resolve_task(ctx, args[0])
    confirmed = len(args) > 1 and args[1].lower() in CONFIRM_WORDS
    if not confirmed:
        return f"Delete '{task.title}'? Repeat as: /rm {args[0]} yes"
    await ctx.lifecycle.delete(task.id, confirmed=True)
    return f"Deleted {task.title}"


async def cmd_move(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /move <id> today|done            -> end of that list
    /move <id> today|done <before>   -> in front of another task
    """
    if len(args) < 2 or args[1].lower() not in ("today", "done"):
        return "Usage: /move <id> today|done [before-id]"
    task = await resolve_task(ctx, args[0])
    before = (await resolve_task(ctx, args[2])).id if len(args) > 2 else None
    moved = await ctx.lifecycle.move(task.id, to=args[1].lower(), before=before)
    return f"Moved {format_task(moved)}"


async def cmd_log(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2 or not args[1].isdigit():
        return "Usage: /log <id> <minutes>"
    task = await ctx.lifecycle.log_time((await resolve_task(ctx, args[0])).id, int(args[1]))
    return f"Logged {args[1]}m on {task.title} (total {task.actual_min}m)"


async def cmd_wip(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /wip      -> show limit
    /wip <n>  -> set limit (clamped to 1..5)
    """
    if args:
        if not args[0].isdigit():
            return "Usage: /wip <n>"
        ctx.lifecycle.wip_limit = int(args[0])
    active = await ctx.lifecycle.active_count()
    return f"WIP {active}/{ctx.lifecycle.wip_limit}"


async def cmd_close(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    result = await ctx.day_close.close_day(
        with_times=ctx.summary_with_times, markdown=ctx.summary_markdown
    )
    # With a handler installed the engine has already reported them.
    if emit and ctx.day_close.on_escalation is None:
        for esc in result.escalations:
            emit(esc.message)
    return result.summary


async def cmd_copy(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await ctx.day_close.copy_current_list(
        with_times=ctx.summary_with_times, markdown=ctx.summary_markdown
    )


async def cmd_format(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /format md|plain        -> summary markup
    /format times on|off    -> completion times in the summary
    """
    if args and args[0].lower() in ("md", "markdown", "plain"):
        ctx.summary_markdown = args[0].lower() != "plain"
    elif len(args) > 1 and args[0].lower() == "times":
        ctx.summary_with_times = args[1].lower() in ("on", "1", "true", "yes")
    elif args:
        return "Usage: /format md|plain | /format times on|off"
    fmt = "markdown" if ctx.summary_markdown else "plain"
    times = "on" if ctx.summary_with_times else "off"
    return f"Summary format: {fmt}, times {times}"


async def cmd_clear_done(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args or args[0].lower() not in CONFIRM_WORDS:
        return "Clear today's done tasks? Repeat as: /clear-done yes"
    n = await ctx.lifecycle.clear_done()
    return f"Cleared {n} done task(s)."


async def cmd_events(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    limit = int(args[0]) if args and args[0].isdigit() else 20
    events = await ctx.events.recent(limit)
    if not events:
        return "No events yet."
    lines = []
    for ev in events:
        ref = f" ({ev.task_id[:8]})" if ev.task_id else ""
        lines.append(f"{_time_of(ev.ts)} • {ev.type.value}{ref}")
    return "\n".join(lines)


async def cmd_export(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    path = args[0] if args else f"tact-{today_key(ctx.clock)}.json"
    payload = await backup.export_payload(ctx.storage, ctx.events, ctx.clock)
    written = backup.write_payload(path, payload)
    return f"Exported {len(payload['tasks'])} tasks, {len(payload['events'])} events to {written}"


async def cmd_import(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /import <path>"
    data = backup.read_payload(args[0])
    n_tasks, n_events = await backup.import_payload(ctx.storage, ctx.bus, data)
    return f"Imported {n_tasks} tasks, {n_events} events."


async def cmd_sync(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync          -> show status
    /sync on|off   -> broadcast refresh signals to other instances
    """
    if args:
        arg = args[0].lower()
        if arg in ("on", "1", "true", "yes"):
            ctx.bus.enabled = True
        elif arg in ("off", "0", "false", "no"):
            ctx.bus.enabled = False
        else:
            return "Usage: /sync on | /sync off"
    if not ctx.bus.available:
        return "Sync unavailable (single instance)."
    return f"Sync is {'ON' if ctx.bus.enabled else 'OFF'}."


async def cmd_reset(ctx: AppContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args or args[0].lower() not in CONFIRM_WORDS:
        return "Erase all tasks, events, and days? Repeat as: /reset yes"
    await backup.clear_all(ctx.storage, ctx.bus)
    return "All data erased."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show today's board: /list [filter].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task for today: /add <title>.")
registry.register("start", cmd_start, help_text="Start a task (WIP limited): /start <id>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id>.")
registry.register("defer", cmd_defer, help_text="Defer a task: /defer <id> [reason].")
registry.register("undo", cmd_undo, help_text="Reopen a done task: /undo <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id> yes.")
registry.register("move", cmd_move, help_text="Reorder: /move <id> today|done [before-id].")
registry.register("log", cmd_log, help_text="Log focus minutes: /log <id> <minutes>.")
registry.register("wip", cmd_wip, help_text="Show/set WIP limit: /wip [n].")
registry.register("close", cmd_close, help_text="Close the day and print the summary.")
registry.register("copy", cmd_copy, help_text="Print the summary of the live day.")
registry.register("format", cmd_format, help_text="Summary format: /format md|plain | times on|off.")
registry.register("clear-done", cmd_clear_done, help_text="Remove today's done tasks: /clear-done yes.")
registry.register("events", cmd_events, help_text="Show recent events: /events [n].")
registry.register("export", cmd_export, help_text="Export tasks and events: /export [path].")
registry.register("import", cmd_import, help_text="Replace all data from an export: /import <path>.")
registry.register("sync", cmd_sync, help_text="Cross-instance refresh: /sync on | /sync off.")
registry.register("reset", cmd_reset, help_text="Erase everything: /reset yes.")
