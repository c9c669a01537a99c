# src/taskpulse/views/search.py

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from ..core.state import Snapshot
from ..tasks.task_models import TaskStatus


class ResultType(StrEnum):
    TASK = "task"
    FILE = "file"
    LINK = "link"


@dataclass(slots=True, frozen=True)
class SearchResult:
    id: str
    type: ResultType
    title: str
    description: str
    tags: tuple[str, ...]
    date: date
    status: TaskStatus | None = None
    url: str | None = None

    def matches(self, query: str) -> bool:
        q = query.lower()
        return (
            q in self.title.lower()
            or q in self.description.lower()
            or any(q in tag.lower() for tag in self.tags)
        )


@dataclass(slots=True, frozen=True)
class SearchFilters:
    query: str = ""
    type: ResultType | None = None
    tag: str | None = None
    on_date: date | None = None


def collect_results(snapshot: Snapshot) -> list[SearchResult]:
    """Flatten tasks, files and links into one searchable list."""
    results: list[SearchResult] = []
    for t in snapshot.tasks:
        results.append(
            SearchResult(
                id=t.id,
                type=ResultType.TASK,
                title=t.title,
                description=t.description,
                tags=tuple(t.tags),
                date=t.created_at,
                status=t.status,
            )
        )
    for f in snapshot.files:
        results.append(
            SearchResult(
                id=f.id,
                type=ResultType.FILE,
                title=f.name,
                description=f"{f.type} • {f.size}",
                tags=tuple(f.tags),
                date=f.added_at,
                url=f.url,
            )
        )
    for link in snapshot.links:
        results.append(
            SearchResult(
                id=link.id,
                type=ResultType.LINK,
                title=link.title,
                description=link.description,
                tags=tuple(link.tags),
                date=link.added_at,
                url=link.url,
            )
        )
    return results


def filter_results(results: Sequence[SearchResult], filters: SearchFilters) -> list[SearchResult]:
    query = filters.query.strip()
    out = []
    for r in results:
        if query and not r.matches(query):
            continue
        if filters.type is not None and r.type != filters.type:
            continue
        if filters.tag is not None and filters.tag not in r.tags:
            continue
        if filters.on_date is not None and r.date != filters.on_date:
            continue
        out.append(r)
    return out


def search(snapshot: Snapshot, filters: SearchFilters | None = None) -> list[SearchResult]:
    return filter_results(collect_results(snapshot), filters or SearchFilters())


def all_tags(results: Sequence[SearchResult]) -> list[str]:
    return sorted({tag for r in results for tag in r.tags})


def all_dates(results: Sequence[SearchResult]) -> list[date]:
    return sorted({r.date for r in results}, reverse=True)


def count_by_type(results: Sequence[SearchResult]) -> dict[ResultType, int]:
    counts = {rt: 0 for rt in ResultType}
    for r in results:
        counts[r.type] += 1
    return counts
