# src/taskpulse/backend/offline.py

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from ..core.ports import Row, Session, SessionListener
from ..errors import AuthError, BackendError

_HINT = "Set TASKPULSE_SUPABASE_URL and TASKPULSE_SUPABASE_ANON_KEY to enable sign-in."


class OfflineIdentity:
    """
    Identity client used when no backend is configured.

    Nobody can sign in, so every store stays empty; the app still starts for
    file bookkeeping and to show configuration hints.
    """

    async def get_session(self) -> Session | None:
        return None

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        return lambda: None

    async def sign_out(self) -> None:
        raise AuthError("Session not found")

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        raise AuthError(f"Offline mode: no backend configured. {_HINT}")

    async def sign_up(self, email: str, password: str, redirect_url: str | None = None) -> Session | None:
        raise AuthError(f"Offline mode: no backend configured. {_HINT}")


class OfflineTable:
    def __init__(self, name: str) -> None:
        self.name = name

    async def select(
        self, *, eq: Mapping[str, Any], order: str | None = None, ascending: bool = True
    ) -> list[Row]:
        return []

    async def insert(self, row: Mapping[str, Any]) -> Row:
        raise BackendError(f"offline: cannot write to {self.name}")

    async def update(self, fields: Mapping[str, Any], *, eq: Mapping[str, Any]) -> None:
        raise BackendError(f"offline: cannot write to {self.name}")

    async def delete(self, *, eq: Mapping[str, Any]) -> None:
        raise BackendError(f"offline: cannot write to {self.name}")
