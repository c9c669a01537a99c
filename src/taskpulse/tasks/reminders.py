# src/taskpulse/tasks/reminders.py

from __future__ import annotations

"""
Deadline reminder scheduler.

Keeps at most one outstanding reminder per task. The reminder id is derived from
the task id (no mapping table), so cancel/reschedule can always target it.

Failures are logged and swallowed: a reminder problem never blocks the task
mutation that triggered it.
"""

import hashlib
import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from ..core.ports import Notifier
from .task_models import Task, TaskStatus

logger = logging.getLogger(__name__)

REMINDER_KEY_BASE = 1000
_REMINDER_KEY_SPAN = 2**31 - 1 - REMINDER_KEY_BASE

DAILY_REVIEW_ID = 1
CHECK_IN_ID = 2


def reminder_key(task_id: str) -> int:
    """
    Deterministic notification id for a task.

    blake2b-64 of the id folded into [1000, 2**31 - 1): fits a signed 32-bit
    notification id and never meets the fixed daily ids below 1000.
    """
    digest = hashlib.blake2b(task_id.encode("utf-8"), digest_size=8).digest()
    return REMINDER_KEY_BASE + int.from_bytes(digest, "big") % _REMINDER_KEY_SPAN


def _needs_reminder(task: Task) -> bool:
    return task.deadline is not None and task.status != TaskStatus.COMPLETED


class ReminderScheduler:
    def __init__(
        self,
        notifier: Notifier,
        *,
        reminder_hour: int = 9,
        daily_review_at: time = time(21, 0),
        check_in_at: time = time(12, 0),
        enabled: bool = True,
    ) -> None:
        self._notifier = notifier
        self._reminder_hour = reminder_hour
        self._daily_review_at = daily_review_at
        self._check_in_at = check_in_at
        self.enabled = enabled

    def when_for(self, deadline: date) -> datetime:
        return datetime.combine(deadline, time(hour=self._reminder_hour))

    # ---- low-level (never raise) ----

    async def schedule(self, task: Task) -> None:
        if not self.enabled or task.deadline is None:
            return
        key = reminder_key(task.id)
        try:
            await self._notifier.schedule_at(
                key,
                "Task deadline",
                f'"{task.title}" is due {task.deadline.isoformat()}',
                self.when_for(task.deadline),
                kind="deadline",
            )
            logger.debug("Reminder scheduled task=%s key=%s deadline=%s", task.id, key, task.deadline)
        except Exception:
            logger.exception("Scheduling reminder failed task=%s key=%s", task.id, key)

    async def cancel(self, task_id: str) -> None:
        if not self.enabled:
            return
        key = reminder_key(task_id)
        try:
            await self._notifier.cancel(key)
            logger.debug("Reminder cancelled task=%s key=%s", task_id, key)
        except Exception:
            logger.exception("Cancelling reminder failed task=%s key=%s", task_id, key)

    # ---- task store hooks ----

    async def on_task_created(self, task: Task) -> None:
        if _needs_reminder(task):
            await self.schedule(task)

    async def on_task_edited(self, before: Task, after: Task) -> None:
        """
        Deadline changed -> cancel the old reminder (if there was a deadline), then
        schedule the new one if the task still needs it. Status moving into/out of Completed with an unchanged
        deadline cancels/restores the reminder.
        """
        if before.deadline != after.deadline:
            if before.deadline is not None:
                await self.cancel(before.id)
            if _needs_reminder(after):
                await self.schedule(after)
            return

        if after.deadline is None or before.status == after.status:
            return
        if after.status == TaskStatus.COMPLETED:
            await self.cancel(after.id)
        elif before.status == TaskStatus.COMPLETED:
            await self.schedule(after)

    async def on_task_deleted(self, task_id: str) -> None:
        await self.cancel(task_id)

    async def release(self, tasks: Iterable[Task], *, include_daily: bool = False) -> None:
        """Cancel the deadline reminders of `tasks` (and the daily ones if asked)."""
        if not self.enabled:
            return
        for task in tasks:
            if task.deadline is not None:
                await self.cancel(task.id)
        if not include_daily:
            return
        for notification_id in (DAILY_REVIEW_ID, CHECK_IN_ID):
            try:
                await self._notifier.cancel(notification_id)
            except Exception:
                logger.exception("Cancelling daily reminder failed id=%s", notification_id)

    # ---- session start ----

    async def start(self, tasks: Iterable[Task], *, today: date | None = None) -> int:
        """
        Request permission, arm the daily review/check-in reminders and
        (re)schedule every open task with a deadline. Returns the number of
        deadline reminders issued.
        """
        if not self.enabled:
            return 0
        if today is None:
            today = date.today()

        try:
            permission = await self._notifier.request_permission()
            logger.info("Notification permission: %s", permission)
        except Exception:
            logger.exception("Requesting notification permission failed")

        await self._schedule_daily(
            DAILY_REVIEW_ID,
            "Daily review",
            "Take a minute to review what you finished today.",
            self._daily_review_at,
            "daily_review",
            today,
        )
        await self._schedule_daily(
            CHECK_IN_ID,
            "Check-in",
            "How are your tasks going? Update their status.",
            self._check_in_at,
            "check_in",
            today,
        )
        return await self.sync(tasks)

    async def sync(self, tasks: Iterable[Task]) -> int:
        count = 0
        for task in tasks:
            if _needs_reminder(task):
                await self.schedule(task)
                count += 1
        logger.info("Deadline reminders synced: %d", count)
        return count

    async def _schedule_daily(
        self, notification_id: int, title: str, body: str, at: time, kind: str, today: date
    ) -> None:
        when = datetime.combine(today, at)
        if when <= datetime.now():
            when += timedelta(days=1)
        try:
            await self._notifier.schedule_at(
                notification_id, title, body, when, kind=kind, every_day=True
            )
        except Exception:
            logger.exception("Scheduling %s reminder failed", kind)
