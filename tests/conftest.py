# tests/conftest.py

from __future__ import annotations

from datetime import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskpulse.agenda.calendar_store import CalendarStore
from taskpulse.core.ports import Session
from taskpulse.core.session import SessionHolder
from taskpulse.core.state import AppState
from taskpulse.library.file_store import FileStore
from taskpulse.library.link_store import LinkStore
from taskpulse.tasks.reminders import ReminderScheduler
from taskpulse.tasks.task_store import TaskStore

from .fakes import TODAY, FakeIdentity, FakeTable, RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskpulse-test",
        data_dir=tmp_path,
        session_path=tmp_path / "session.json",
        signup_redirect_url=None,
        notifications_enabled=True,
        deadline_reminder_hour=9,
        daily_review_time=time(21, 0),
        check_in_time=time(12, 0),
        max_file_size_mb=1,
    )


@pytest.fixture()
def user_session() -> Session:
    return Session(user_id="u1", access_token="tok", email="ada@example.com")


@pytest.fixture()
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture()
def tables() -> dict[str, FakeTable]:
    return {name: FakeTable(name=name) for name in ("tasks", "links", "calendar")}


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    identity: FakeIdentity,
    tables: dict[str, FakeTable],
    notifier: RecordingNotifier,
) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: the stores and the reminder scheduler are the real ones; only the
    backend tables, the identity service and notification delivery are faked.
    """
    session = SessionHolder(identity)
    reminders = ReminderScheduler(notifier, reminder_hour=settings.deadline_reminder_hour)
    app = AppState(
        settings=settings,
        session=session,
        tasks=TaskStore(session, tables["tasks"], reminders=reminders, today=lambda: TODAY),
        files=FileStore(max_size_mb=settings.max_file_size_mb, today=lambda: TODAY),
        links=LinkStore(session, tables["links"], today=lambda: TODAY),
        calendar=CalendarStore(session, tables["calendar"]),
        reminders=reminders,
        notifier=notifier,
    )
    app.bind()
    return app

