# tests/test_supabase_backend.py

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from taskpulse.backend.supabase import SupabaseClient
from taskpulse.core.ports import AuthEvent
from taskpulse.errors import AuthError, BackendError

URL = "https://project.example.co"
KEY = "anon-key"


class Recorder:
    """
    httpx.MockTransport handler: scripted responses keyed by (method, path).
    A list value is served one response per request, in order.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], httpx.Response | list[httpx.Response]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resp = self.responses.get((request.method, request.url.path))
        if isinstance(resp, list):
            resp = resp.pop(0) if resp else None
        if resp is None:
            return httpx.Response(404, json={"message": "no route"})
        return resp


def _auth_payload(user_id: str = "u1", token: str = "access-1", expires_in: int = 3600) -> dict:
    return {
        "access_token": token,
        "refresh_token": "refresh-1",
        "expires_in": expires_in,
        "user": {"id": user_id, "email": "ada@example.com"},
    }


def _client(recorder: Recorder, session_path: Path | None = None) -> SupabaseClient:
    return SupabaseClient(URL, KEY, session_path=session_path, transport=httpx.MockTransport(recorder))


@pytest.mark.asyncio
async def test_select_builds_filters_and_order() -> None:
    rec = Recorder()
    rec.responses[("GET", "/rest/v1/tasks")] = httpx.Response(200, json=[{"id": "a"}])
    client = _client(rec)

    rows = await client.table("tasks").select(eq={"user_id": "u1"}, order="created_at", ascending=False)

    assert rows == [{"id": "a"}]
    req = rec.requests[0]
    assert req.url.params["user_id"] == "eq.u1"
    assert req.url.params["order"] == "created_at.desc"
    assert req.url.params["select"] == "*"
    assert req.headers["apikey"] == KEY
    assert req.headers["authorization"] == f"Bearer {KEY}"
    await client.aclose()


@pytest.mark.asyncio
async def test_insert_returns_created_row() -> None:
    rec = Recorder()
    rec.responses[("POST", "/rest/v1/links")] = httpx.Response(201, json=[{"id": "l1", "title": "x"}])
    client = _client(rec)

    row = await client.table("links").insert({"title": "x", "user_id": "u1"})

    assert row == {"id": "l1", "title": "x"}
    req = rec.requests[0]
    assert json.loads(req.content) == [{"title": "x", "user_id": "u1"}]
    assert req.headers["prefer"] == "return=representation"
    await client.aclose()


@pytest.mark.asyncio
async def test_update_and_delete_refuse_unfiltered_writes() -> None:
    rec = Recorder()
    client = _client(rec)
    table = client.table("tasks")

    with pytest.raises(BackendError):
        await table.update({"title": "x"}, eq={})
    with pytest.raises(BackendError):
        await table.delete(eq={})

    assert rec.requests == []
    await client.aclose()


@pytest.mark.asyncio
async def test_error_responses_raise_backend_error_with_status() -> None:
    rec = Recorder()
    rec.responses[("PATCH", "/rest/v1/calendar")] = httpx.Response(
        400, json={"message": "invalid input syntax for type date"}
    )
    client = _client(rec)

    with pytest.raises(BackendError) as exc:
        await client.table("calendar").update({"date": "nope"}, eq={"id": "c1", "completed": True})

    assert exc.value.status == 400
    assert "invalid input" in exc.value.message
    assert rec.requests[0].url.params["completed"] == "eq.true"
    await client.aclose()


@pytest.mark.asyncio
async def test_sign_in_persists_session_and_uses_token(tmp_path: Path) -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = httpx.Response(200, json=_auth_payload())
    rec.responses[("GET", "/rest/v1/tasks")] = httpx.Response(200, json=[])
    session_path = tmp_path / "session.json"
    client = _client(rec, session_path)
    events: list[AuthEvent] = []

    async def listener(event, session) -> None:
        events.append(event)

    client.auth.on_session_change(listener)
    session = await client.auth.sign_in_with_password("ada@example.com", "pw")
    await client.table("tasks").select(eq={"user_id": session.user_id})

    assert session.user_id == "u1"
    assert events == [AuthEvent.SIGNED_IN]
    assert rec.requests[0].url.params["grant_type"] == "password"
    assert rec.requests[1].headers["authorization"] == "Bearer access-1"
    assert json.loads(session_path.read_text("utf-8"))["user_id"] == "u1"
    await client.aclose()

    # A fresh client restores the stored session without a network call.
    restored = _client(Recorder(), session_path)
    again = await restored.auth.get_session()
    assert again is not None
    assert again.user_id == "u1"
    await restored.aclose()


@pytest.mark.asyncio
async def test_sign_in_rejected_raises_auth_error() -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = httpx.Response(
        400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
    )
    client = _client(rec)

    with pytest.raises(AuthError) as exc:
        await client.auth.sign_in_with_password("ada@example.com", "bad")

    assert exc.value.message == "Invalid login credentials"
    assert exc.value.status == 400
    await client.aclose()


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_returns_none() -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/signup")] = httpx.Response(200, json={"id": "u9", "email": "x@y.z"})
    client = _client(rec)

    assert await client.auth.sign_up("x@y.z", "pw", "https://app.example/welcome") is None
    assert rec.requests[0].url.params["redirect_to"] == "https://app.example/welcome"
    await client.aclose()


@pytest.mark.asyncio
async def test_sign_out_session_not_found_still_forgets(tmp_path: Path) -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = httpx.Response(200, json=_auth_payload())
    rec.responses[("POST", "/auth/v1/logout")] = httpx.Response(
        403, json={"code": 403, "error_code": "session_not_found", "msg": "Session from session_id claim in JWT does not exist"}
    )
    session_path = tmp_path / "session.json"
    client = _client(rec, session_path)
    events: list[AuthEvent] = []

    async def listener(event, session) -> None:
        events.append(event)

    client.auth.on_session_change(listener)
    await client.auth.sign_in_with_password("ada@example.com", "pw")

    with pytest.raises(AuthError) as exc:
        await client.auth.sign_out()

    assert exc.value.is_session_not_found
    assert events == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]
    assert client.auth.access_token is None
    assert not session_path.exists()
    await client.aclose()


@pytest.mark.asyncio
async def test_expired_session_is_refreshed_on_restore(tmp_path: Path) -> None:
    session_path = tmp_path / "session.json"
    session_path.write_text(
        json.dumps(
            {"user_id": "u1", "access_token": "old", "refresh_token": "refresh-1", "expires_at": 1.0}
        ),
        "utf-8",
    )
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = httpx.Response(200, json=_auth_payload(token="fresh"))
    client = _client(rec, session_path)

    session = await client.auth.get_session()

    assert session is not None
    assert session.access_token == "fresh"
    assert rec.requests[0].url.params["grant_type"] == "refresh_token"
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_becomes_backend_error() -> None:
    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = SupabaseClient(URL, KEY, transport=httpx.MockTransport(boom))

    with pytest.raises(BackendError):
        await client.table("tasks").select(eq={"user_id": "u1"})
    await client.aclose()


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_before_request() -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = [
        httpx.Response(200, json=_auth_payload(expires_in=5)),
        httpx.Response(200, json=_auth_payload(token="access-2")),
    ]
    rec.responses[("GET", "/rest/v1/tasks")] = httpx.Response(200, json=[])
    client = _client(rec)
    events: list[AuthEvent] = []

    async def listener(event, session) -> None:
        events.append(event)

    client.auth.on_session_change(listener)
    await client.auth.sign_in_with_password("ada@example.com", "pw")

    assert await client.table("tasks").select(eq={"user_id": "u1"}) == []

    assert [r.url.params.get("grant_type") for r in rec.requests] == ["password", "refresh_token", None]
    assert rec.requests[2].headers["authorization"] == "Bearer access-2"
    assert events == [AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED]
    await client.aclose()


@pytest.mark.asyncio
async def test_unauthorized_request_is_retried_once_after_refresh() -> None:
    rec = Recorder()
    rec.responses[("POST", "/auth/v1/token")] = [
        httpx.Response(200, json=_auth_payload()),
        httpx.Response(200, json=_auth_payload(token="access-2")),
    ]
    rec.responses[("GET", "/rest/v1/tasks")] = [
        httpx.Response(401, json={"message": "JWT expired"}),
        httpx.Response(200, json=[{"id": "a"}]),
    ]
    client = _client(rec)
    await client.auth.sign_in_with_password("ada@example.com", "pw")

    rows = await client.table("tasks").select(eq={"user_id": "u1"})

    assert rows == [{"id": "a"}]
    gets = [r for r in rec.requests if r.method == "GET"]
    assert [r.headers["authorization"] for r in gets] == ["Bearer access-1", "Bearer access-2"]
    assert client.auth.access_token == "access-2"
    await client.aclose()


@pytest.mark.asyncio
async def test_unauthorized_without_session_is_not_retried() -> None:
    rec = Recorder()
    rec.responses[("GET", "/rest/v1/tasks")] = httpx.Response(401, json={"message": "JWT expired"})
    client = _client(rec)

    with pytest.raises(BackendError) as exc:
        await client.table("tasks").select(eq={"user_id": "u1"})

    assert exc.value.status == 401
    assert len(rec.requests) == 1
    await client.aclose()
