# src/taskpulse/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

_EOF = object()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleMessenger:
    """OutboundMessenger that prints to the terminal (used by the notification dispatcher)."""

    async def send_text(self, *, text: str) -> None:
        _print_ts(f"[REMINDER] {text}")


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> threading.Thread:
    """
    Read stdin lines in a daemon thread and hand them to the loop.

    A daemon thread (not the default executor) so a pending input() never
    blocks interpreter shutdown.
    """

    def _put(item: object) -> None:
        # The loop may already be closed when the user types after /exit.
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(queue.put_nowait, item)

    def _reader() -> None:
        while True:
            line = sys.stdin.readline()
            if not line:
                _put(_EOF)
                return
            _put(line.rstrip("\n"))

    t = threading.Thread(target=_reader, name="console-stdin", daemon=True)
    t.start()
    return t


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.session.user_id)
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "taskpulse"))
    _print_ts(f"[{app_name}] Use /help for commands. Use /exit to quit.")
    if state.session.user_id is None:
        _print_ts("Not signed in. Use /login <email> <password> or /signup <email> <password>.")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for slow backend calls
        _print_ts(text)

    queue: asyncio.Queue = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), queue)

    while True:
        print(">>> ", end="", flush=True)
        item = await queue.get()
        if item is _EOF:
            logger.info("Console EOF received, exiting.")
            print()
            break

        user_input = str(item).strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list them."
        _print_ts(response)

    logger.info("Console connector finished.")
