# src/taskpulse/core/state.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..agenda.agenda_models import CalendarEvent
from ..agenda.calendar_store import CalendarStore
from ..library.file_store import FileStore
from ..library.library_models import FileItem, LinkItem
from ..library.link_store import LinkStore
from ..tasks.reminders import ReminderScheduler
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore
from .ports import Notifier
from .session import SessionHolder

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable read of every store, consumed by the views."""

    tasks: tuple[Task, ...] = ()
    files: tuple[FileItem, ...] = ()
    links: tuple[LinkItem, ...] = ()
    events: tuple[CalendarEvent, ...] = ()
    user_id: str | None = None


@dataclass
class AppState:
    settings: Any
    session: SessionHolder
    tasks: TaskStore
    files: FileStore
    links: LinkStore
    calendar: CalendarStore
    reminders: ReminderScheduler
    notifier: Notifier

    backend: Any = None  # SupabaseClient when online; closed on shutdown
    background: list[asyncio.Task[Any]] = field(default_factory=list)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            tasks=self.tasks.tasks,
            files=self.files.files,
            links=self.links.links,
            events=self.calendar.events,
            user_id=self.session.user_id,
        )

    def bind(self) -> None:
        """Wire the session holder to the stores (the only cross-store invalidation)."""
        self.session.subscribe(self.on_user_changed)

    async def on_user_changed(self, user_id: str | None) -> None:
        """
        Sign-out: the previous user's reminders are cancelled, every store drops its collection.
        Sign-in / user switch: same, then re-fetch and re-arm reminders.
        """
        await self.reminders.release(self.tasks.tasks, include_daily=True)
        self.files.clear()

        if user_id is None:
            self.tasks.clear()
            self.links.clear()
            self.calendar.clear()
            logger.info("Signed out; stores cleared")
            return

        await self._fetch_remote(user_id)
        await self.reminders.start(self.tasks.tasks, today=date.today())

    async def reload(self) -> None:
        """
        Re-fetch the signed-in user's remote collections.
        Session-local files stay; deadline reminders are re-synced to the fresh task list.
        """
        user_id = self.session.user_id
        if user_id is None:
            return
        await self.reminders.release(self.tasks.tasks)
        await self._fetch_remote(user_id)
        await self.reminders.sync(self.tasks.tasks)

    async def _fetch_remote(self, user_id: str) -> None:
        await asyncio.gather(
            self.tasks.reload(user_id),
            self.links.reload(user_id),
            self.calendar.reload(user_id),
        )
