# src/taskpulse/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the hosted backend or the offline fallback,
- wires session holder, stores, reminder scheduler and notifier into AppState.
"""

from __future__ import annotations

import logging

from ..agenda.calendar_store import CalendarStore
from ..backend.offline import OfflineIdentity, OfflineTable
from ..backend.supabase import SupabaseClient
from ..config import get_settings
from ..core.ports import IdentityClient, TableClient
from ..core.session import SessionHolder
from ..core.state import AppState
from ..library.file_store import FileStore
from ..library.link_store import LinkStore
from ..notifications.local import LocalNotifier
from ..tasks.reminders import ReminderScheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

TABLES = ("tasks", "links", "calendar")


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    backend: SupabaseClient | None = None
    identity: IdentityClient
    tables: dict[str, TableClient]
    if settings.backend_configured:
        backend = SupabaseClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.http_timeout_seconds,
            session_path=settings.session_path,
        )
        identity = backend.auth
        tables = {name: backend.table(name) for name in TABLES}
    else:
        logger.warning("No backend configured; running offline (sign-in disabled).")
        identity = OfflineIdentity()
        tables = {name: OfflineTable(name) for name in TABLES}

    notifier = LocalNotifier()
    reminders = ReminderScheduler(
        notifier,
        reminder_hour=settings.deadline_reminder_hour,
        daily_review_at=settings.daily_review_time,
        check_in_at=settings.check_in_time,
        enabled=settings.notifications_enabled,
    )
    session = SessionHolder(identity)

    state = AppState(
        settings=settings,
        session=session,
        tasks=TaskStore(session, tables["tasks"], reminders=reminders),
        files=FileStore(max_size_mb=settings.max_file_size_mb),
        links=LinkStore(session, tables["links"]),
        calendar=CalendarStore(session, tables["calendar"]),
        reminders=reminders,
        notifier=notifier,
        backend=backend,
    )
    state.bind()
    return state
