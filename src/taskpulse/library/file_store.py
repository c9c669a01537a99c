# src/taskpulse/library/file_store.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import date
from pathlib import Path

from ..tasks.task_models import parse_tags
from .library_models import FileItem, file_type_for, format_file_size

logger = logging.getLogger(__name__)


class FileStore:
    """
    Files attached during this session.

    Memory only: there is no remote table for files, so add/delete are
    synchronous and the entries are gone after sign-out or restart.
    """

    def __init__(
        self,
        *,
        max_size_mb: int = 10,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._files: list[FileItem] = []
        self._max_size_bytes = max_size_mb * 1024 * 1024
        self._today = today

    @property
    def files(self) -> tuple[FileItem, ...]:
        return tuple(self._files)

    def clear(self) -> None:
        self._files = []

    def add(
        self,
        *,
        name: str,
        url: str,
        size_bytes: int,
        tags: Iterable[str] | str | None = None,
        added_at: date | None = None,
    ) -> FileItem:
        item = FileItem(
            id=str(uuid.uuid4()),
            name=name,
            type=file_type_for(name),
            size=format_file_size(size_bytes),
            tags=parse_tags(tags),
            added_at=added_at or self._today(),
            url=url,
        )
        self._files.append(item)
        logger.debug("File added id=%s name=%s type=%s", item.id, item.name, item.type)
        return item

    def add_from_path(self, path: str | Path, tags: Iterable[str] | str | None = None) -> FileItem | None:
        """Register a local file. Missing or oversized files are rejected (None)."""
        p = Path(path).expanduser()
        try:
            size = p.stat().st_size
        except OSError:
            logger.warning("File not readable: %s", p)
            return None
        if not p.is_file():
            logger.warning("Not a regular file: %s", p)
            return None
        if size > self._max_size_bytes:
            logger.warning(
                "File too large: %s (%d bytes > %d)", p, size, self._max_size_bytes
            )
            return None
        return self.add(name=p.name, url=p.resolve().as_uri(), size_bytes=size, tags=tags)

    def delete(self, file_id: str) -> bool:
        before = len(self._files)
        self._files = [f for f in self._files if f.id != file_id]
        return len(self._files) != before
