# src/taskpulse/tasks/task_store.py

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from ..core.ports import TableClient
from ..core.result import Err, Ok, Result
from .task_models import (
    Task,
    TaskDraft,
    TaskStatus,
    fields_to_row,
    normalize_fields,
    row_to_task,
)

if TYPE_CHECKING:
    from ..core.session import SessionHolder
    from .reminders import ReminderScheduler

logger = logging.getLogger(__name__)


class TaskStore:
    """
    In-memory task collection mirrored to the remote `tasks` table.

    Rules:
    - every remote call is scoped by the current user's id
    - memory changes only after the backend confirmed the write (no optimistic updates)
    - no exception crosses this boundary: reads return Result, writes return
      the created Task / True on success and None / False on failure
    - deadline-affecting writes are reported to the reminder scheduler afterwards
    """

    def __init__(
        self,
        session: SessionHolder,
        table: TableClient,
        *,
        reminders: ReminderScheduler | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._session = session
        self._table = table
        self._reminders = reminders
        self._today = today
        self._tasks: list[Task] = []
        self._generation = 0
        self.last_error: str | None = None

    # ---- snapshot ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def get(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def clear(self) -> None:
        self._generation += 1
        self._tasks = []
        self.last_error = None

    # ---- reads ----

    async def list(self, user_id: str) -> Result[list[Task]]:
        """Fetch the user's tasks, newest-created first."""
        try:
            rows = await self._table.select(
                eq={"user_id": user_id}, order="created_at", ascending=False
            )
        except Exception as e:
            logger.exception("Fetching tasks failed user=%s", user_id)
            return Err(str(e) or e.__class__.__name__)
        try:
            return Ok([row_to_task(r) for r in rows])
        except (KeyError, TypeError, ValueError) as e:
            logger.exception("Malformed task rows user=%s", user_id)
            return Err(f"malformed task row: {e}")

    async def reload(self, user_id: str | None) -> Result[list[Task]]:
        """
        Drop whatever is held and load `user_id`'s tasks (None just clears).

        A result that arrives after another reload/clear started is discarded.
        """
        self.clear()
        if not user_id:
            return Ok([])

        generation = self._generation
        res = await self.list(user_id)
        if generation != self._generation:
            logger.debug("Discarding stale task reload user=%s", user_id)
            return res

        if isinstance(res, Ok):
            self._tasks = list(res.value)
            logger.info("Tasks loaded user=%s count=%d", user_id, len(self._tasks))
        else:
            self.last_error = res.reason
        return res

    # ---- writes ----

    async def create(self, draft: TaskDraft) -> Task | None:
        user_id = self._session.user_id
        if not user_id:
            logger.warning("create task ignored: not signed in")
            return None

        fields = dataclasses.asdict(draft)
        if fields.get("created_at") is None:
            fields["created_at"] = self._today()
        row = fields_to_row(fields)
        row["user_id"] = user_id

        try:
            created_row = await self._table.insert(row)
            task = row_to_task(created_row)
        except Exception:
            logger.exception("Creating task failed title=%r", draft.title)
            return None

        self._tasks.insert(0, task)
        logger.debug("Task created id=%s status=%s deadline=%s", task.id, task.status, task.deadline)

        if self._reminders is not None:
            await self._reminders.on_task_created(task)
        return task

    async def update(self, task_id: str, fields: Mapping[str, Any]) -> bool:
        """Persist only `fields`; merge them into memory when the backend accepts them."""
        user_id = self._session.user_id
        if not user_id:
            logger.warning("update task ignored: not signed in id=%s", task_id)
            return False

        try:
            local = normalize_fields(fields)
            row = fields_to_row(fields)
        except ValueError:
            logger.exception("Invalid task fields id=%s fields=%r", task_id, dict(fields))
            return False
        if not row:
            return True

        try:
            await self._table.update(row, eq={"id": task_id, "user_id": user_id})
        except Exception:
            logger.exception("Updating task failed id=%s", task_id)
            return False

        before = self.get(task_id)
        after: Task | None = None
        if before is not None:
            after = dataclasses.replace(before, **local)
            self._tasks = [after if t.id == task_id else t for t in self._tasks]
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(local))

        if self._reminders is not None and before is not None and after is not None:
            await self._reminders.on_task_edited(before, after)
        return True

    async def delete(self, task_id: str) -> bool:
        user_id = self._session.user_id
        if not user_id:
            logger.warning("delete task ignored: not signed in id=%s", task_id)
            return False

        try:
            await self._table.delete(eq={"id": task_id, "user_id": user_id})
        except Exception:
            logger.exception("Deleting task failed id=%s", task_id)
            return False

        self._tasks = [t for t in self._tasks if t.id != task_id]
        logger.debug("Task deleted id=%s", task_id)

        if self._reminders is not None:
            await self._reminders.on_task_deleted(task_id)
        return True

    async def toggle_status(self, task_id: str) -> bool:
        """
        Completed -> In Progress, anything else -> Completed.
        completed_at is set to today on completion and cleared otherwise.
        """
        existing = self.get(task_id)
        if existing is None or not self._session.user_id:
            return False

        if existing.status == TaskStatus.COMPLETED:
            new_status = TaskStatus.IN_PROGRESS
            completed_at = None
        else:
            new_status = TaskStatus.COMPLETED
            completed_at = self._today()

        return await self.update(task_id, {"status": new_status, "completed_at": completed_at})
