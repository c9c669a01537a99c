# src/taskpulse/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The stores, the session holder and the reminder scheduler depend on Protocols
instead of concrete implementations. This keeps the hosted backend and the
notification delivery swappable and makes testing easier.
"""

import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol

Row = dict[str, Any]
# A remote row as returned by the data collaborator (snake_case keys).


class AuthEvent(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


@dataclass(slots=True, frozen=True)
class Session:
    user_id: str
    access_token: str
    refresh_token: str = ""
    email: str | None = None
    expires_at: float | None = None  # unix seconds

    def is_expired(self, now_ts: float | None = None, *, leeway: float = 30.0) -> bool:
        if self.expires_at is None:
            return False
        if now_ts is None:
            now_ts = time.time()
        return now_ts + leeway >= self.expires_at


SessionListener = Callable[[AuthEvent, "Session | None"], Awaitable[None]]


class IdentityClient(Protocol):
    """Hosted authentication service (sign-in, sign-up, session stream)."""

    def get_session(self) -> Awaitable[Session | None]: ...

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register callback; returns an unsubscribe function."""
        ...

    def sign_out(self) -> Awaitable[None]: ...

    def sign_in_with_password(self, email: str, password: str) -> Awaitable[Session]: ...

    def sign_up(
        self, email: str, password: str, redirect_url: str | None = None
    ) -> Awaitable[Session | None]: ...


class TableClient(Protocol):
    """
    One remote table. Every call raises BackendError on failure.

    `eq` is an equality filter (column -> value); stores always include user_id.
    """

    def select(
        self,
        *,
        eq: Mapping[str, Any],
        order: str | None = None,
        ascending: bool = True,
    ) -> Awaitable[list[Row]]: ...

    def insert(self, row: Mapping[str, Any]) -> Awaitable[Row]: ...

    def update(self, fields: Mapping[str, Any], *, eq: Mapping[str, Any]) -> Awaitable[None]: ...

    def delete(self, *, eq: Mapping[str, Any]) -> Awaitable[None]: ...


@dataclass(slots=True, frozen=True)
class PendingNotification:
    id: int
    title: str
    body: str
    schedule: datetime
    kind: str = "deadline"  # deadline | daily_review | check_in
    every_day: bool = False


class Notifier(Protocol):
    """Local/push notification delivery. Re-scheduling an existing id replaces it."""

    def request_permission(self) -> Awaitable[str]: ...

    def schedule_at(
        self,
        notification_id: int,
        title: str,
        body: str,
        when: datetime,
        *,
        kind: str = "deadline",
        every_day: bool = False,
    ) -> Awaitable[None]: ...

    def cancel(self, notification_id: int) -> Awaitable[None]: ...

    def list_pending(self) -> Awaitable[list[PendingNotification]]: ...

    def clear_all(self) -> Awaitable[None]: ...


class OutboundMessenger(Protocol):
    """
    Front-end port: how background services (notification dispatcher) surface text.
    The console connector prints it; other front-ends may toast it.
    """

    def send_text(self, *, text: str) -> Awaitable[None]: ...
