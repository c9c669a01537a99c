# src/taskpulse/library/library_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from pathlib import PurePath
from typing import Any

from ..tasks.task_models import parse_date


class FileType(StrEnum):
    PDF = "PDF"
    IMAGE = "Image"
    DOCUMENT = "Document"
    OTHER = "Other"


_EXTENSION_TYPES: dict[str, FileType] = {
    "pdf": FileType.PDF,
    "jpg": FileType.IMAGE,
    "jpeg": FileType.IMAGE,
    "png": FileType.IMAGE,
    "gif": FileType.IMAGE,
    "webp": FileType.IMAGE,
    "doc": FileType.DOCUMENT,
    "docx": FileType.DOCUMENT,
    "txt": FileType.DOCUMENT,
    "rtf": FileType.DOCUMENT,
}

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def file_type_for(filename: str) -> FileType:
    ext = PurePath(filename).suffix.lstrip(".").lower()
    return _EXTENSION_TYPES.get(ext, FileType.OTHER)


def format_file_size(num_bytes: int) -> str:
    """1024-based, up to two decimals, trailing zeros dropped: 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    i = 0
    while i < len(_SIZE_UNITS) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1
    value = round(num_bytes / (1024**i), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


@dataclass(slots=True, frozen=True)
class FileItem:
    id: str
    name: str
    type: FileType
    size: str
    tags: list[str]
    added_at: date
    url: str


@dataclass(slots=True, frozen=True)
class LinkItem:
    id: str
    title: str
    url: str
    description: str
    tags: list[str]
    added_at: date


def row_to_link(row: Mapping[str, Any]) -> LinkItem:
    return LinkItem(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        url=str(row.get("url") or ""),
        description=str(row.get("description") or ""),
        tags=list(row.get("tags") or []),
        added_at=parse_date(row.get("added_at")) or date.today(),
    )
