# src/taskpulse/notifications/local.py

from __future__ import annotations

"""
In-process notification collaborator.

LocalNotifier keeps pending notifications keyed by id (scheduling an existing id
replaces it). run_notification_dispatcher is a small polling loop that:
- pops notifications whose time has come,
- hands their text to an injected messenger port,
- re-arms daily notifications for the next day.

How the text reaches the user (console line, desktop toast) belongs to the
messenger, not the dispatcher.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ..core.ports import OutboundMessenger, PendingNotification

logger = logging.getLogger(__name__)


class LocalNotifier:
    def __init__(self, *, permission: str = "granted") -> None:
        self._pending: dict[int, PendingNotification] = {}
        self._permission = permission

    async def request_permission(self) -> str:
        return self._permission

    async def schedule_at(
        self,
        notification_id: int,
        title: str,
        body: str,
        when: datetime,
        *,
        kind: str = "deadline",
        every_day: bool = False,
    ) -> None:
        if self._permission != "granted":
            logger.debug("Notification %s dropped: permission=%s", notification_id, self._permission)
            return
        replaced = notification_id in self._pending
        self._pending[notification_id] = PendingNotification(
            id=notification_id,
            title=title,
            body=body,
            schedule=when,
            kind=kind,
            every_day=every_day,
        )
        logger.debug(
            "Notification %s id=%s at=%s", "replaced" if replaced else "scheduled", notification_id, when
        )

    async def cancel(self, notification_id: int) -> None:
        self._pending.pop(notification_id, None)

    async def list_pending(self) -> list[PendingNotification]:
        return sorted(self._pending.values(), key=lambda n: (n.schedule, n.id))

    async def clear_all(self) -> None:
        self._pending.clear()

    def pop_due(self, now: datetime) -> list[PendingNotification]:
        """Remove and return notifications due at `now`; daily ones are re-armed."""
        due = [n for n in self._pending.values() if n.schedule <= now]
        due.sort(key=lambda n: (n.schedule, n.id))
        for n in due:
            if n.every_day:
                nxt = n.schedule
                while nxt <= now:
                    nxt += timedelta(days=1)
                self._pending[n.id] = PendingNotification(
                    id=n.id,
                    title=n.title,
                    body=n.body,
                    schedule=nxt,
                    kind=n.kind,
                    every_day=True,
                )
            else:
                del self._pending[n.id]
        return due


async def run_notification_dispatcher(
    notifier: LocalNotifier,
    messenger: OutboundMessenger,
    *,
    interval_seconds: float = 30.0,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Every interval_seconds deliver due notifications via messenger.send_text(...).

    A failed delivery is logged; the notification is not retried.
    To stop the dispatcher, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        for n in notifier.pop_due(clock()):
            try:
                await messenger.send_text(text=f"[{n.title}] {n.body}")
                logger.info("Notification delivered id=%s kind=%s", n.id, n.kind)
            except Exception:
                logger.exception("Notification delivery failed id=%s", n.id)

        await asyncio.sleep(sleep_s)
