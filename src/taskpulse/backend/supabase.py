# src/taskpulse/backend/supabase.py

from __future__ import annotations

"""
Hosted backend adapter (Supabase-compatible REST).

- SupabaseTable: PostgREST rows under /rest/v1/<table>, equality filters only.
- SupabaseAuth: GoTrue password auth under /auth/v1, with a session event stream
  and a small JSON session file so a restart does not force a new sign-in.

Every failure is raised (BackendError / AuthError); the stores decide what a
failure means for their in-memory state.
"""

import asyncio
import contextlib
import json
import logging
import os
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import httpx

from ..core.ports import AuthEvent, Row, Session, SessionListener
from ..errors import AuthError, BackendError

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        if data.get("error_code") == "session_not_found" or data.get("code") == "session_not_found":
            return "Session not found"
        for key in ("msg", "message", "error_description", "error"):
            val = data.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    text = (resp.text or "").strip()
    return text or resp.reason_phrase or f"HTTP {resp.status_code}"


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _eq_params(eq: Mapping[str, Any]) -> dict[str, str]:
    return {col: f"eq.{_filter_value(v)}" for col, v in eq.items()}


class SupabaseClient:
    """Owns the HTTP connection pool; hands out table and auth facades."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        timeout: float = 10.0,
        session_path: str | Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url or not anon_key:
            raise ValueError("Supabase url and anon key are required")
        self.base_url = url.rstrip("/")
        self._anon_key = anon_key
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"apikey": anon_key},
            transport=transport,
        )
        self.auth = SupabaseAuth(self, session_path=session_path)

    def table(self, name: str) -> SupabaseTable:
        return SupabaseTable(self, name)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[BackendError] = BackendError,
        headers: Mapping[str, str] | None = None,
        auto_refresh: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request with the current bearer token.

        With auto_refresh an expiring session is refreshed first, and a 401 is
        retried once after a refresh. Auth endpoints pass auto_refresh=False.
        """
        if auto_refresh:
            await self.auth.ensure_fresh()
        token = self.auth.access_token
        resp = await self._send(method, path, token, error_cls, headers, kwargs)
        if resp.status_code == 401 and auto_refresh and token is not None:
            logger.info("Got 401 on %s %s, refreshing the session", method, path)
            if await self.auth.ensure_fresh(stale_token=token):
                resp = await self._send(method, path, self.auth.access_token, error_cls, headers, kwargs)
        if resp.is_error:
            raise error_cls(_error_message(resp), resp.status_code)
        return resp

    async def _send(
        self,
        method: str,
        path: str,
        token: str | None,
        error_cls: type[BackendError],
        headers: Mapping[str, str] | None,
        kwargs: Mapping[str, Any],
    ) -> httpx.Response:
        merged = {"Authorization": f"Bearer {token or self._anon_key}", **(headers or {})}
        try:
            return await self._http.request(method, path, headers=merged, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"{method} {path} failed: {e}") from e


class SupabaseTable:
    def __init__(self, client: SupabaseClient, name: str) -> None:
        self._client = client
        self.name = name
        self._path = f"/rest/v1/{name}"

    async def select(
        self,
        *,
        eq: Mapping[str, Any],
        order: str | None = None,
        ascending: bool = True,
    ) -> list[Row]:
        params = {"select": "*", **_eq_params(eq)}
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        resp = await self._client.request("GET", self._path, params=params)
        data = resp.json()
        if not isinstance(data, list):
            raise BackendError(f"unexpected select payload from {self.name}")
        return data

    async def insert(self, row: Mapping[str, Any]) -> Row:
        resp = await self._client.request(
            "POST",
            self._path,
            json=[dict(row)],
            headers={"Prefer": "return=representation"},
        )
        data = resp.json()
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise BackendError(f"insert into {self.name} returned no row")
        return data

    async def update(self, fields: Mapping[str, Any], *, eq: Mapping[str, Any]) -> None:
        if not eq:
            raise BackendError(f"refusing unfiltered update on {self.name}")
        await self._client.request(
            "PATCH",
            self._path,
            params=_eq_params(eq),
            json=dict(fields),
            headers={"Prefer": "return=minimal"},
        )

    async def delete(self, *, eq: Mapping[str, Any]) -> None:
        if not eq:
            raise BackendError(f"refusing unfiltered delete on {self.name}")
        await self._client.request("DELETE", self._path, params=_eq_params(eq))


def _session_from_payload(data: Any) -> Session:
    if not isinstance(data, dict):
        raise AuthError("Malformed auth response")
    user = data.get("user") or {}
    access_token = data.get("access_token")
    user_id = user.get("id")
    if not access_token or not user_id:
        raise AuthError("Missing token or user id in auth response")

    expires_at = data.get("expires_at")
    if expires_at is None and data.get("expires_in") is not None:
        expires_at = time.time() + float(data["expires_in"])
    return Session(
        user_id=str(user_id),
        access_token=str(access_token),
        refresh_token=str(data.get("refresh_token") or ""),
        email=user.get("email"),
        expires_at=float(expires_at) if expires_at is not None else None,
    )


class SupabaseAuth:
    """Password auth + session events (SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED)."""

    def __init__(self, client: SupabaseClient, *, session_path: str | Path | None = None) -> None:
        self._client = client
        self._session_path = Path(session_path) if session_path else None
        self._session: Session | None = None
        self._listeners: list[SessionListener] = []
        self._refresh_lock = asyncio.Lock()

    @property
    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    async def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for cb in list(self._listeners):
            try:
                await cb(event, session)
            except Exception:
                logger.exception("Auth listener failed event=%s", event)

    # ---- session persistence ----

    def _save_session(self, session: Session) -> None:
        self._session = session
        if self._session_path is None:
            return
        path = self._session_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            payload = {
                "user_id": session.user_id,
                "email": session.email,
                "access_token": session.access_token,
                "refresh_token": session.refresh_token,
                "expires_at": session.expires_at,
            }
            tmp.write_text(json.dumps(payload), "utf-8")
            os.replace(tmp, path)
            with contextlib.suppress(OSError):
                # Tokens: keep the file private on disk.
                os.chmod(path, 0o600)
        except OSError:
            logger.exception("Failed to persist session to %s", path)

    def _load_session(self) -> Session | None:
        path = self._session_path
        if path is None or not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
            return Session(
                user_id=str(data["user_id"]),
                access_token=str(data["access_token"]),
                refresh_token=str(data.get("refresh_token") or ""),
                email=data.get("email"),
                expires_at=data.get("expires_at"),
            )
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Failed to load session from %s", path)
            return None

    def _forget_session(self) -> None:
        self._session = None
        if self._session_path is not None:
            with contextlib.suppress(FileNotFoundError):
                self._session_path.unlink()

    # ---- identity operations ----

    async def get_session(self) -> Session | None:
        if self._session is None:
            self._session = self._load_session()
        if self._session is not None and self._session.is_expired():
            try:
                await self.refresh_session()
            except AuthError as e:
                logger.warning("Stored session could not be refreshed: %s", e)
                self._forget_session()
        return self._session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        resp = await self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            error_cls=AuthError,
            auto_refresh=False,
        )
        session = _session_from_payload(resp.json())
        self._save_session(session)
        logger.info("Signed in user=%s", session.user_id)
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(
        self, email: str, password: str, redirect_url: str | None = None
    ) -> Session | None:
        params = {"redirect_to": redirect_url} if redirect_url else None
        resp = await self._client.request(
            "POST",
            "/auth/v1/signup",
            params=params,
            json={"email": email, "password": password},
            error_cls=AuthError,
            auto_refresh=False,
        )
        data = resp.json()
        if not isinstance(data, dict) or not data.get("access_token"):
            # Email confirmation pending: the account exists but there is no session yet.
            return None
        session = _session_from_payload(data)
        self._save_session(session)
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> Session:
        current = self._session
        if current is None or not current.refresh_token:
            raise AuthError("Session not found")
        resp = await self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": current.refresh_token},
            error_cls=AuthError,
            auto_refresh=False,
        )
        session = _session_from_payload(resp.json())
        self._save_session(session)
        logger.info("Token refreshed user=%s", session.user_id)
        await self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def ensure_fresh(self, *, stale_token: str | None = None) -> bool:
        """
        Refresh when the session is about to expire, or when `stale_token` (a token
        the server just rejected) is still the current one. Returns True when a newer
        token than `stale_token` is available.

        Concurrent callers share one refresh: refresh tokens are single use.
        """
        async with self._refresh_lock:
            current = self._session
            if current is None:
                return False
            if stale_token is not None and current.access_token != stale_token:
                return True
            if not current.refresh_token:
                return False
            if stale_token is None and not current.is_expired():
                return False
            await self.refresh_session()
            return True

    async def sign_out(self) -> None:
        """Forget the local session no matter what; remote failures are re-raised."""
        if self._session is None:
            raise AuthError("Session not found")
        try:
            await self._client.request(
                "POST", "/auth/v1/logout", error_cls=AuthError, auto_refresh=False
            )
        finally:
            self._forget_session()
            await self._emit(AuthEvent.SIGNED_OUT, None)
