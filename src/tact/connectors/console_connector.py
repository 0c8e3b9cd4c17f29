# src/tact/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import cmd_list
from ..cli.commands import registry as command_registry
from ..core.state import AppContext

logger = logging.getLogger(__name__)

PROMPT = "tact> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def render_board(ctx: AppContext) -> None:
    """Re-run the board query and print it (used after peer refreshes)."""
    try:
        _print_ts("[sync] Data changed in another instance.\n" + await cmd_list(ctx, []))
    except Exception:
        logger.exception("Board refresh failed.")


async def run_console_loop(ctx: AppContext) -> None:
    logger.info("Console connector started (storage=%s).", ctx.storage.name)
    _print_ts("[CONSOLE] Use /help for commands, /add <title> to add a task, /exit to quit.\n")

    lock = asyncio.Lock()

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, PROMPT)).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {PROMPT}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Bare text adds a task.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            async with lock:
                response = await command_registry.handle(ctx, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            _print_ts(response)

    logger.info("Console connector finished.")
