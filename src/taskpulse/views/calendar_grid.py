# src/taskpulse/views/calendar_grid.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from ..agenda.agenda_models import CalendarEvent
from .common import percent


@dataclass(slots=True, frozen=True)
class CalendarDay:
    day: date
    is_current_month: bool
    events: tuple[CalendarEvent, ...]

    @property
    def completed_count(self) -> int:
        return sum(1 for ev in self.events if ev.completed)


@dataclass(slots=True, frozen=True)
class MonthView:
    year: int
    month: int
    days: tuple[CalendarDay, ...]

    @property
    def title(self) -> str:
        return date(self.year, self.month, 1).strftime("%B %Y")

    def weeks(self) -> list[tuple[CalendarDay, ...]]:
        return [self.days[i : i + 7] for i in range(0, len(self.days), 7)]


def events_by_date(events: Iterable[CalendarEvent]) -> dict[date, list[CalendarEvent]]:
    grouped: dict[date, list[CalendarEvent]] = {}
    for ev in events:
        grouped.setdefault(ev.date, []).append(ev)
    return grouped


def _sunday_index(d: date) -> int:
    """0 for Sunday .. 6 for Saturday."""
    return (d.weekday() + 1) % 7


def month_view(events: Iterable[CalendarEvent], year: int, month: int) -> MonthView:
    """Sunday-start grid covering the month, padded with neighbour days to whole weeks."""
    first = date(year, month, 1)
    next_first = date(year + (month == 12), month % 12 + 1, 1)
    last = next_first - timedelta(days=1)

    start = first - timedelta(days=_sunday_index(first))
    end = last + timedelta(days=6 - _sunday_index(last))

    grouped = events_by_date(events)
    days = []
    cur = start
    while cur <= end:
        days.append(
            CalendarDay(
                day=cur,
                is_current_month=cur.month == month,
                events=tuple(grouped.get(cur, ())),
            )
        )
        cur += timedelta(days=1)
    return MonthView(year=year, month=month, days=tuple(days))


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Navigate months: shift_month(2025, 12, 1) -> (2026, 1)."""
    index = year * 12 + (month - 1) + delta
    y, m = divmod(index, 12)
    return y, m + 1


def completion_summary(events: Sequence[CalendarEvent]) -> tuple[int, int]:
    """(completed events, completion percentage)."""
    done = sum(1 for ev in events if ev.completed)
    return done, percent(done, len(events))
