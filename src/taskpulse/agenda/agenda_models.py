# src/taskpulse/agenda/agenda_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..tasks.task_models import parse_date

# Fields a caller may change on an existing event.
EDITABLE_FIELDS = ("title", "description", "date", "completed")


@dataclass(slots=True, frozen=True)
class CalendarEvent:
    id: str
    title: str
    description: str | None
    date: date
    completed: bool
    created_at: date


def row_to_event(row: Mapping[str, Any]) -> CalendarEvent:
    event_date = parse_date(row.get("date"))
    if event_date is None:
        raise ValueError(f"calendar row {row.get('id')!r} has no date")
    return CalendarEvent(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        description=row.get("description"),
        date=event_date,
        completed=bool(row.get("completed")),
        created_at=parse_date(row.get("created_at")) or event_date,
    )


def event_fields_to_row(fields: Mapping[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for key in EDITABLE_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key == "date":
            parsed = parse_date(value)
            if parsed is None:
                raise ValueError(f"invalid event date: {value!r}")
            row[key] = parsed.isoformat()
        elif key == "completed":
            row[key] = bool(value)
        else:
            row[key] = value
    return row
