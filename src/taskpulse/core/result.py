# src/taskpulse/core/result.py

"""
Explicit outcome type for store reads.

Ok(items) and Err(reason) keep "the fetch failed" apart from
"the user genuinely has nothing", so callers choose their own fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class Err:
    reason: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
