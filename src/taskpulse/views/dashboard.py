# src/taskpulse/views/dashboard.py

from __future__ import annotations

"""Dashboard projections. Pure functions over a store snapshot; nothing is cached."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from ..core.state import Snapshot
from ..library.library_models import FileItem, LinkItem
from ..tasks.task_models import Task, TaskStatus
from .common import percent


@dataclass(slots=True, frozen=True)
class TodayStats:
    tasks_completed: int
    tasks_total: int
    files_added: int
    links_added: int

    @property
    def completion_percentage(self) -> int:
        return percent(self.tasks_completed, self.tasks_total)


@dataclass(slots=True, frozen=True)
class Dashboard:
    today: TodayStats
    streak: int
    recent_tasks: tuple[Task, ...]
    recent_files: tuple[FileItem, ...]
    recent_links: tuple[LinkItem, ...]
    upcoming_deadlines: tuple[Task, ...]


def today_stats(
    tasks: Sequence[Task],
    files: Sequence[FileItem],
    links: Sequence[LinkItem],
    *,
    today: date,
) -> TodayStats:
    completed_today = sum(
        1 for t in tasks if t.status == TaskStatus.COMPLETED and t.completed_at == today
    )
    open_or_done_today = sum(
        1
        for t in tasks
        if t.status == TaskStatus.IN_PROGRESS
        or (t.status == TaskStatus.COMPLETED and t.completed_at == today)
    )
    return TodayStats(
        tasks_completed=completed_today,
        tasks_total=max(open_or_done_today, completed_today),
        files_added=sum(1 for f in files if f.added_at == today),
        links_added=sum(1 for link in links if link.added_at == today),
    )


def performance_streak(tasks: Iterable[Task], *, today: date) -> int:
    """
    Consecutive days with at least one completion, walking back from today.

    Today without a completion does not break the streak (the day is not over);
    any earlier day without one ends the walk.
    """
    days = {t.completed_at for t in tasks if t.completed_at is not None}
    streak = 0
    day = today
    while day in days or day == today:
        if day in days:
            streak += 1
        day -= timedelta(days=1)
    return streak


def recent_tasks(tasks: Iterable[Task], limit: int = 3) -> tuple[Task, ...]:
    return tuple(sorted(tasks, key=lambda t: t.created_at, reverse=True)[:limit])


def recent_files(files: Iterable[FileItem], limit: int = 3) -> tuple[FileItem, ...]:
    return tuple(sorted(files, key=lambda f: f.added_at, reverse=True)[:limit])


def recent_links(links: Iterable[LinkItem], limit: int = 3) -> tuple[LinkItem, ...]:
    return tuple(sorted(links, key=lambda link: link.added_at, reverse=True)[:limit])


def upcoming_deadlines(tasks: Iterable[Task], limit: int = 2) -> tuple[Task, ...]:
    """Nearest deadlines of tasks that are not completed (overdue ones included)."""
    pending = [t for t in tasks if t.deadline is not None and t.status != TaskStatus.COMPLETED]
    pending.sort(key=lambda t: t.deadline or date.max)
    return tuple(pending[:limit])


def build_dashboard(snapshot: Snapshot, *, today: date | None = None) -> Dashboard:
    if today is None:
        today = date.today()
    return Dashboard(
        today=today_stats(snapshot.tasks, snapshot.files, snapshot.links, today=today),
        streak=performance_streak(snapshot.tasks, today=today),
        recent_tasks=recent_tasks(snapshot.tasks),
        recent_files=recent_files(snapshot.files),
        recent_links=recent_links(snapshot.links),
        upcoming_deadlines=upcoming_deadlines(snapshot.tasks),
    )
