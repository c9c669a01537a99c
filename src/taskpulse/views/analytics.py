# src/taskpulse/views/analytics.py

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from ..core.state import Snapshot
from ..tasks.task_models import Task, TaskStatus
from .common import percent, round_half_up

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
CATEGORY_COLORS = ("#3b82f6", "#8b5cf6", "#10b981", "#f59e0b", "#ef4444")
FALLBACK_COLOR = "#6b7280"


@dataclass(slots=True, frozen=True)
class DayPoint:
    day: date
    label: str
    completed: int
    total: int


@dataclass(slots=True, frozen=True)
class MonthPoint:
    year: int
    month: int
    label: str
    completed: int


@dataclass(slots=True, frozen=True)
class CategorySlice:
    name: str
    value: int
    color: str

    @property
    def label(self) -> str:
        return self.name[:1].upper() + self.name[1:]


@dataclass(slots=True, frozen=True)
class Metrics:
    completed_this_week: int
    avg_daily: float
    success_rate: int
    most_active_category: str | None
    most_active_pct: int


@dataclass(slots=True, frozen=True)
class Insight:
    kind: str  # success | info | warning
    title: str
    description: str


@dataclass(slots=True, frozen=True)
class AnalyticsReport:
    weekly: tuple[DayPoint, ...]
    monthly: tuple[MonthPoint, ...]
    categories: tuple[CategorySlice, ...]
    metrics: Metrics
    insights: tuple[Insight, ...]


def success_rate(tasks: Sequence[Task]) -> int:
    """Completed / total as a rounded percentage; 0 for no tasks."""
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    return percent(completed, len(tasks))


def tag_counts(tasks: Iterable[Task]) -> list[tuple[str, int]]:
    """
    Tag occurrence counts, highest first. Sorting is stable, so equal counts
    keep first-encountered order.
    """
    counts: dict[str, int] = {}
    for t in tasks:
        for tag in t.tags:
            counts[tag] = counts.get(tag, 0) + 1
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)


def category_breakdown(tasks: Iterable[Task], limit: int = 5) -> tuple[CategorySlice, ...]:
    return tuple(
        CategorySlice(
            name=name,
            value=value,
            color=CATEGORY_COLORS[i] if i < len(CATEGORY_COLORS) else FALLBACK_COLOR,
        )
        for i, (name, value) in enumerate(tag_counts(tasks)[:limit])
    )


def most_active_category(tasks: Iterable[Task]) -> tuple[str, int] | None:
    ranked = tag_counts(tasks)
    return ranked[0] if ranked else None


def weekly_data(tasks: Sequence[Task], *, today: date) -> tuple[DayPoint, ...]:
    points = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        completed = sum(
            1 for t in tasks if t.status == TaskStatus.COMPLETED and t.completed_at == day
        )
        total = sum(1 for t in tasks if t.created_at == day or t.completed_at == day)
        points.append(
            DayPoint(
                day=day,
                label=WEEKDAY_LABELS[day.weekday()],
                completed=completed,
                total=max(total, completed),
            )
        )
    return tuple(points)


def monthly_trend(tasks: Sequence[Task], *, today: date, months: int = 6) -> tuple[MonthPoint, ...]:
    points = []
    for back in range(months - 1, -1, -1):
        index = today.year * 12 + (today.month - 1) - back
        year, month = divmod(index, 12)
        month += 1
        completed = sum(
            1
            for t in tasks
            if t.completed_at is not None
            and t.completed_at.year == year
            and t.completed_at.month == month
        )
        points.append(
            MonthPoint(year=year, month=month, label=MONTH_LABELS[month - 1], completed=completed)
        )
    return tuple(points)


def compute_metrics(tasks: Sequence[Task], *, today: date) -> Metrics:
    week_start = today - timedelta(days=7)
    completed_this_week = sum(
        1
        for t in tasks
        if t.status == TaskStatus.COMPLETED and t.completed_at is not None and t.completed_at > week_start
    )
    top = most_active_category(tasks)
    return Metrics(
        completed_this_week=completed_this_week,
        avg_daily=round_half_up(completed_this_week / 7, 1),
        success_rate=success_rate(tasks),
        most_active_category=top[0] if top else None,
        most_active_pct=percent(top[1], len(tasks)) if top else 0,
    )


def insights(metrics: Metrics) -> tuple[Insight, ...]:
    out = []
    if metrics.completed_this_week > 0:
        out.append(
            Insight(
                kind="success",
                title="Great productivity this week!",
                description=(
                    f"You completed {metrics.completed_this_week} tasks this week with a "
                    f"{metrics.success_rate}% overall success rate."
                ),
            )
        )
    if metrics.avg_daily > 1:
        out.append(
            Insight(
                kind="info",
                title="Consistent daily progress",
                description=(
                    f"You're averaging {metrics.avg_daily:g} tasks per day. Keep up the momentum!"
                ),
            )
        )
    if metrics.most_active_category is not None:
        name = metrics.most_active_category
        label = name[:1].upper() + name[1:]
        out.append(
            Insight(
                kind="warning",
                title=f"Focus area: {label}",
                description=(
                    f"{metrics.most_active_pct}% of your tasks are {label.lower()}-related. "
                    "You're building strong expertise in this area."
                ),
            )
        )
    return tuple(out)


def build_analytics(snapshot: Snapshot, *, today: date | None = None) -> AnalyticsReport:
    if today is None:
        today = date.today()
    tasks = snapshot.tasks
    metrics = compute_metrics(tasks, today=today)
    return AnalyticsReport(
        weekly=weekly_data(tasks, today=today),
        monthly=monthly_trend(tasks, today=today),
        categories=category_breakdown(tasks),
        metrics=metrics,
        insights=insights(metrics),
    )
