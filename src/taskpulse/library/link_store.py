# src/taskpulse/library/link_store.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date
from typing import TYPE_CHECKING

from ..core.ports import TableClient
from ..core.result import Err, Ok, Result
from ..tasks.task_models import parse_tags
from .library_models import LinkItem, row_to_link

if TYPE_CHECKING:
    from ..core.session import SessionHolder

logger = logging.getLogger(__name__)


class LinkStore:
    """Saved links mirrored to the remote `links` table. Links are never edited, only created/deleted."""

    def __init__(
        self,
        session: SessionHolder,
        table: TableClient,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._session = session
        self._table = table
        self._today = today
        self._links: list[LinkItem] = []
        self._generation = 0
        self.last_error: str | None = None

    @property
    def links(self) -> tuple[LinkItem, ...]:
        return tuple(self._links)

    def clear(self) -> None:
        self._generation += 1
        self._links = []
        self.last_error = None

    async def list(self, user_id: str) -> Result[list[LinkItem]]:
        try:
            rows = await self._table.select(eq={"user_id": user_id}, order="added_at", ascending=False)
            return Ok([row_to_link(r) for r in rows])
        except Exception as e:
            logger.exception("Fetching links failed user=%s", user_id)
            return Err(str(e) or e.__class__.__name__)

    async def reload(self, user_id: str | None) -> Result[list[LinkItem]]:
        self.clear()
        if not user_id:
            return Ok([])
        generation = self._generation
        res = await self.list(user_id)
        if generation != self._generation:
            return res
        if isinstance(res, Ok):
            self._links = list(res.value)
            logger.info("Links loaded user=%s count=%d", user_id, len(self._links))
        else:
            self.last_error = res.reason
        return res

    async def create(
        self,
        *,
        title: str,
        url: str,
        description: str = "",
        tags: Iterable[str] | str | None = None,
        added_at: date | None = None,
    ) -> LinkItem | None:
        user_id = self._session.user_id
        if not user_id:
            logger.warning("save link ignored: not signed in")
            return None
        row = {
            "user_id": user_id,
            "title": title,
            "url": url,
            "description": description or "",
            "tags": parse_tags(tags),
            "added_at": (added_at or self._today()).isoformat(),
        }
        try:
            link = row_to_link(await self._table.insert(row))
        except Exception:
            logger.exception("Saving link failed url=%s", url)
            return None
        self._links.insert(0, link)
        return link

    async def delete(self, link_id: str) -> bool:
        user_id = self._session.user_id
        if not user_id:
            return False
        try:
            await self._table.delete(eq={"id": link_id, "user_id": user_id})
        except Exception:
            logger.exception("Deleting link failed id=%s", link_id)
            return False
        self._links = [link for link in self._links if link.id != link_id]
        return True
