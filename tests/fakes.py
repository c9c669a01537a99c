# tests/fakes.py

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from taskpulse.core.ports import (
    AuthEvent,
    OutboundMessenger,
    PendingNotification,
    Row,
    Session,
    SessionListener,
)
from taskpulse.core.state import AppState
from taskpulse.errors import AuthError, BackendError

TODAY = date(2025, 6, 15)


def _matches(row: Mapping[str, Any], eq: Mapping[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in eq.items())


class FakeTable:
    """
    In-memory TableClient.

    - records every call as (method, payload) for assertions
    - `failing = True` makes every call raise BackendError
    """

    def __init__(self, rows: list[Row] | None = None, *, name: str = "table") -> None:
        self.name = name
        self.rows: list[Row] = [dict(r) for r in (rows or [])]
        self.calls: list[tuple[str, Any]] = []
        self.failing = False
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.failing:
            raise BackendError(f"{self.name} unavailable", status=503)

    async def select(
        self, *, eq: Mapping[str, Any], order: str | None = None, ascending: bool = True
    ) -> list[Row]:
        self.calls.append(("select", {"eq": dict(eq), "order": order, "ascending": ascending}))
        self._check()
        out = [dict(r) for r in self.rows if _matches(r, eq)]
        if order is not None:
            out.sort(key=lambda r: str(r.get(order) or ""), reverse=not ascending)
        return out

    async def insert(self, row: Mapping[str, Any]) -> Row:
        self.calls.append(("insert", dict(row)))
        self._check()
        created = {"id": f"{self.name}-{next(self._ids)}", "created_at": "2025-06-15", **row}
        self.rows.append(created)
        return dict(created)

    async def update(self, fields: Mapping[str, Any], *, eq: Mapping[str, Any]) -> None:
        self.calls.append(("update", {"fields": dict(fields), "eq": dict(eq)}))
        self._check()
        for r in self.rows:
            if _matches(r, eq):
                r.update(fields)

    async def delete(self, *, eq: Mapping[str, Any]) -> None:
        self.calls.append(("delete", {"eq": dict(eq)}))
        self._check()
        self.rows = [r for r in self.rows if not _matches(r, eq)]


class FakeIdentity:
    """IdentityClient with a settable session and a scripted sign-out failure."""

    def __init__(self, session: Session | None = None) -> None:
        self.session = session
        self.sign_out_error: Exception | None = None
        self.sign_out_calls = 0
        self.accounts: dict[str, str] = {}
        self._listeners: list[SessionListener] = []

    async def get_session(self) -> Session | None:
        return self.session

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    async def emit(self, event: AuthEvent, session: Session | None) -> None:
        for cb in list(self._listeners):
            await cb(event, session)

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.session = None
        await self.emit(AuthEvent.SIGNED_OUT, None)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        if self.accounts.get(email) != password:
            raise AuthError("Invalid login credentials", status=400)
        self.session = Session(user_id=f"user-{email}", access_token="tok", email=email)
        await self.emit(AuthEvent.SIGNED_IN, self.session)
        return self.session

    async def sign_up(self, email: str, password: str, redirect_url: str | None = None) -> Session | None:
        self.accounts[email] = password
        return None


@dataclass(slots=True)
class RecordingNotifier:
    """
    Notifier that remembers pending notifications and logs schedule/cancel calls.
    `fail = True` makes schedule/cancel raise.
    """

    pending: dict[int, PendingNotification] = field(default_factory=dict)
    calls: list[tuple[str, int]] = field(default_factory=list)
    fail: bool = False

    async def request_permission(self) -> str:
        return "granted"

    async def schedule_at(
        self,
        notification_id: int,
        title: str,
        body: str,
        when: datetime,
        *,
        kind: str = "deadline",
        every_day: bool = False,
    ) -> None:
        self.calls.append(("schedule", notification_id))
        if self.fail:
            raise RuntimeError("notifier down")
        self.pending[notification_id] = PendingNotification(
            id=notification_id, title=title, body=body, schedule=when, kind=kind, every_day=every_day
        )

    async def cancel(self, notification_id: int) -> None:
        self.calls.append(("cancel", notification_id))
        if self.fail:
            raise RuntimeError("notifier down")
        self.pending.pop(notification_id, None)

    async def list_pending(self) -> list[PendingNotification]:
        return sorted(self.pending.values(), key=lambda n: (n.schedule, n.id))

    async def clear_all(self) -> None:
        self.pending.clear()

    def deadline_calls(self) -> list[tuple[str, int]]:
        """Calls that target task reminders (fixed daily ids excluded)."""
        return [c for c in self.calls if c[1] >= 1000]


@dataclass(slots=True)
class FakeMessenger(OutboundMessenger):
    """
    Fake OutboundMessenger used by dispatcher tests.
    """

    sent: list[str] = field(default_factory=list)
    fail_first: bool = False

    async def send_text(self, *, text: str) -> None:
        if self.fail_first:
            self.fail_first = False
            raise RuntimeError("terminal gone")
        self.sent.append(text)


async def sign_in(app: AppState, identity: FakeIdentity, session: Session) -> None:
    """Restore `session` through the holder, which reloads every store."""
    identity.session = session
    await app.session.start()
