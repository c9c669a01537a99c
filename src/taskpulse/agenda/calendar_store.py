# src/taskpulse/agenda/calendar_store.py

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from ..core.ports import TableClient
from ..core.result import Err, Ok, Result
from .agenda_models import CalendarEvent, event_fields_to_row, row_to_event

if TYPE_CHECKING:
    from ..core.session import SessionHolder

logger = logging.getLogger(__name__)


class CalendarStore:
    """Calendar events mirrored to the remote `calendar` table (ordered by date, ascending)."""

    def __init__(self, session: SessionHolder, table: TableClient) -> None:
        self._session = session
        self._table = table
        self._events: list[CalendarEvent] = []
        self._generation = 0
        self.last_error: str | None = None

    @property
    def events(self) -> tuple[CalendarEvent, ...]:
        return tuple(self._events)

    def get(self, event_id: str) -> CalendarEvent | None:
        for ev in self._events:
            if ev.id == event_id:
                return ev
        return None

    def clear(self) -> None:
        self._generation += 1
        self._events = []
        self.last_error = None

    async def list(self, user_id: str) -> Result[list[CalendarEvent]]:
        try:
            rows = await self._table.select(eq={"user_id": user_id}, order="date", ascending=True)
            return Ok([row_to_event(r) for r in rows])
        except Exception as e:
            logger.exception("Fetching calendar events failed user=%s", user_id)
            return Err(str(e) or e.__class__.__name__)

    async def reload(self, user_id: str | None) -> Result[list[CalendarEvent]]:
        self.clear()
        if not user_id:
            return Ok([])
        generation = self._generation
        res = await self.list(user_id)
        if generation != self._generation:
            return res
        if isinstance(res, Ok):
            self._events = list(res.value)
            logger.info("Calendar events loaded user=%s count=%d", user_id, len(self._events))
        else:
            self.last_error = res.reason
        return res

    async def create(
        self,
        *,
        title: str,
        event_date: date,
        description: str | None = None,
        completed: bool = False,
    ) -> CalendarEvent | None:
        user_id = self._session.user_id
        if not user_id:
            logger.warning("add event ignored: not signed in")
            return None
        if not title.strip():
            logger.warning("add event ignored: empty title")
            return None
        row = {
            "user_id": user_id,
            "title": title,
            "description": description,
            "date": event_date.isoformat(),
            "completed": completed,
        }
        try:
            event = row_to_event(await self._table.insert(row))
        except Exception:
            logger.exception("Creating calendar event failed title=%r", title)
            return None
        self._events.insert(0, event)
        return event

    async def update(self, event_id: str, fields: Mapping[str, Any]) -> bool:
        user_id = self._session.user_id
        if not user_id:
            return False
        try:
            row = event_fields_to_row(fields)
        except ValueError:
            logger.exception("Invalid calendar fields id=%s", event_id)
            return False
        if not row:
            return True
        try:
            await self._table.update(row, eq={"id": event_id, "user_id": user_id})
        except Exception:
            logger.exception("Updating calendar event failed id=%s", event_id)
            return False

        local: dict[str, Any] = dict(row)
        if "date" in local:
            local["date"] = date.fromisoformat(local["date"])
        self._events = [
            dataclasses.replace(ev, **local) if ev.id == event_id else ev for ev in self._events
        ]
        return True

    async def toggle_completed(self, event_id: str) -> bool:
        ev = self.get(event_id)
        if ev is None:
            return False
        return await self.update(event_id, {"completed": not ev.completed})

    async def delete(self, event_id: str) -> bool:
        user_id = self._session.user_id
        if not user_id:
            return False
        try:
            await self._table.delete(eq={"id": event_id, "user_id": user_id})
        except Exception:
            logger.exception("Deleting calendar event failed id=%s", event_id)
            return False
        self._events = [ev for ev in self._events if ev.id != event_id]
        return True
