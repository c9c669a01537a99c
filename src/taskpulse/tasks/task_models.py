# src/taskpulse/tasks/task_models.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    """Task lifecycle status (values are the remote column values)."""

    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DEFERRED = "Deferred"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.IN_PROGRESS
        try:
            return cls(raw)
        except ValueError:
            return cls.IN_PROGRESS


def parse_date(raw: Any) -> date | None:
    """Remote dates arrive as 'YYYY-MM-DD' (or a timestamp starting with it)."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None


def parse_tags(raw: str | Iterable[str] | None) -> list[str]:
    """'a, b,,c' -> ['a', 'b', 'c']; lists are trimmed the same way. Duplicates are kept."""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [str(p).strip() for p in parts if str(p).strip()]


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    status: TaskStatus
    tags: list[str]
    created_at: date
    deadline: date | None = None
    completed_at: date | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


@dataclass(slots=True)
class TaskDraft:
    """User input for a new task; the backend assigns the id."""

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.IN_PROGRESS
    tags: list[str] = field(default_factory=list)
    deadline: date | None = None
    created_at: date | None = None  # defaults to today at creation
    completed_at: date | None = None


# Local field name -> remote column name.
FIELD_TO_COLUMN: dict[str, str] = {
    "title": "title",
    "description": "description",
    "status": "status",
    "tags": "tags",
    "deadline": "deadline",
    "created_at": "created_at",
    "completed_at": "completed_at",
}


def _date_to_db(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def fields_to_row(fields: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map partial local fields to remote columns.

    - unknown keys (and 'id') are dropped
    - an empty-string deadline becomes NULL
    - dates are serialized as ISO strings
    """
    row: dict[str, Any] = {}
    for key, value in fields.items():
        col = FIELD_TO_COLUMN.get(key)
        if col is None:
            continue
        if key in ("deadline", "created_at", "completed_at"):
            row[col] = _date_to_db(value)
        elif key == "status":
            row[col] = TaskStatus(value).value
        elif key == "tags":
            row[col] = list(value or [])
        else:
            row[col] = value
    return row


def normalize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Local-side view of a partial update (same coercions as fields_to_row)."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if key not in FIELD_TO_COLUMN:
            continue
        if key in ("deadline", "created_at", "completed_at"):
            out[key] = parse_date(value)
        elif key == "status":
            out[key] = TaskStatus(value)
        elif key == "tags":
            out[key] = list(value or [])
        else:
            out[key] = value
    return out


def row_to_task(row: Mapping[str, Any]) -> Task:
    created_at = parse_date(row.get("created_at"))
    if created_at is None:
        logger.debug("Task row without created_at id=%s, using today", row.get("id"))
        created_at = date.today()
    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        description=str(row.get("description") or ""),
        status=TaskStatus.from_db(row.get("status")),
        tags=list(row.get("tags") or []),
        created_at=created_at,
        deadline=parse_date(row.get("deadline")),
        completed_at=parse_date(row.get("completed_at")),
    )
