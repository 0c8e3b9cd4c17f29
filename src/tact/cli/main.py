# src/tact/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the AppContext, subscribes the console to peer
refresh signals, then runs the console REPL until /exit.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import close_context, create_context
from ..config import get_settings
from ..connectors.console_connector import render_board, run_console_loop
from ..day.close import Escalation
from ..logging_setup import setup_logging
from ..sync.file_channel import WATCHER_THREAD_NAME

logger = logging.getLogger(__name__)


def _print_escalation(esc: Escalation) -> None:
    print(f"[!] {esc.message}", flush=True)


async def _run(settings) -> None:
    ctx = await create_context(settings=settings, on_escalation=_print_escalation)
    try:
        ctx.bus.on_refresh(lambda: render_board(ctx))
        await run_console_loop(ctx)
    finally:
        await close_context(ctx)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tact")
    setup_logging(
        log_dir=log_dir,
        console_level=console_level,
        quiet_threads=(WATCHER_THREAD_NAME,),
    )

    logger.info("Starting %s...", getattr(settings, "app_name", "tact"))

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
