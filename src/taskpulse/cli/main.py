# src/taskpulse/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, restores the session, then runs:
- the notification dispatcher as a background task (optional),
- the console REPL until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..config import Settings, get_settings
from ..connectors.console_connector import ConsoleMessenger, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..notifications.local import LocalNotifier, run_notification_dispatcher
from .bootstrap import create_initial_state

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for task in state.background:
        task.cancel()
    for task in state.background:
        with contextlib.suppress(asyncio.CancelledError):
            try:
                await task
            except Exception:
                logger.debug("Background task ended with error.", exc_info=True)
    state.background.clear()

    try:
        await state.session.close()
    except Exception:
        logger.debug("Session close failed.", exc_info=True)

    backend = getattr(state, "backend", None)
    if backend is not None:
        try:
            await backend.aclose()
        except Exception:
            logger.debug("Backend close failed.", exc_info=True)


async def _run(settings: Settings) -> None:
    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    try:
        await state.session.start()

        if settings.notifications_enabled and isinstance(state.notifier, LocalNotifier):
            state.background.append(
                asyncio.create_task(
                    run_notification_dispatcher(
                        state.notifier,
                        ConsoleMessenger(),
                        interval_seconds=settings.notification_poll_seconds,
                    ),
                    name="notification-dispatcher",
                )
            )

        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        print()
        logger.info("KeyboardInterrupt, exiting.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
