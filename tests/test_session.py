# tests/test_session.py

from __future__ import annotations

from datetime import date

import pytest

from taskpulse.core.ports import AuthEvent, Session
from taskpulse.errors import AuthError, BackendError
from taskpulse.tasks.reminders import CHECK_IN_ID, DAILY_REVIEW_ID, reminder_key

from .fakes import sign_in


def _seed(tables) -> None:
    tables["tasks"].rows = [
        {"id": "t1", "user_id": "u1", "title": "a", "status": "In Progress", "created_at": "2025-06-01"}
    ]
    tables["links"].rows = [
        {"id": "l1", "user_id": "u1", "title": "docs", "url": "https://example.com", "added_at": "2025-06-01"}
    ]
    tables["calendar"].rows = [
        {"id": "c1", "user_id": "u1", "title": "standup", "date": "2025-06-02", "completed": False}
    ]


def _assert_all_empty(state) -> None:
    snap = state.snapshot()
    assert snap.tasks == ()
    assert snap.files == ()
    assert snap.links == ()
    assert snap.events == ()
    assert snap.user_id is None


async def _signed_in_with_data(state, identity, tables, user_session) -> None:
    _seed(tables)
    await sign_in(state, identity, user_session)
    state.files.add(name="notes.txt", url="file:///tmp/notes.txt", size_bytes=10)
    snap = state.snapshot()
    assert len(snap.tasks) == len(snap.files) == len(snap.links) == len(snap.events) == 1


@pytest.mark.asyncio
async def test_restore_session_loads_every_store(state, identity, tables, user_session) -> None:
    _seed(tables)
    assert state.session.loading is True

    await sign_in(state, identity, user_session)

    assert state.session.loading is False
    assert state.session.user_id == "u1"
    assert [t.id for t in state.tasks.tasks] == ["t1"]
    assert [link.id for link in state.links.links] == ["l1"]
    assert [ev.date for ev in state.calendar.events] == [date(2025, 6, 2)]


@pytest.mark.asyncio
async def test_sign_out_clears_all_stores(state, identity, tables, user_session) -> None:
    await _signed_in_with_data(state, identity, tables, user_session)

    await state.session.sign_out()

    assert identity.sign_out_calls == 1
    _assert_all_empty(state)


@pytest.mark.asyncio
async def test_sign_out_cancels_previous_users_reminders(state, identity, tables, notifier, user_session) -> None:
    tables["tasks"].rows = [
        {"id": "t1", "user_id": "u1", "title": "Report", "status": "In Progress",
         "deadline": "2025-06-20", "created_at": "2025-06-01"}
    ]
    await sign_in(state, identity, user_session)
    assert reminder_key("t1") in notifier.pending

    await state.session.sign_out()

    assert await notifier.list_pending() == []


@pytest.mark.asyncio
async def test_user_switch_drops_outgoing_reminders(state, identity, tables, notifier, user_session) -> None:
    tables["tasks"].rows = [
        {"id": "t1", "user_id": "u1", "title": "Report", "status": "In Progress",
         "deadline": "2025-06-20", "created_at": "2025-06-01"}
    ]
    await sign_in(state, identity, user_session)

    await identity.emit(AuthEvent.SIGNED_IN, Session(user_id="u2", access_token="tok2"))

    assert reminder_key("t1") not in notifier.pending
    assert set(notifier.pending) == {DAILY_REVIEW_ID, CHECK_IN_ID}


@pytest.mark.asyncio
async def test_sign_out_session_not_found_still_clears(state, identity, tables, user_session) -> None:
    await _signed_in_with_data(state, identity, tables, user_session)
    identity.sign_out_error = AuthError("Session not found", status=403)

    await state.session.sign_out()

    _assert_all_empty(state)
    assert state.session.loading is False


@pytest.mark.asyncio
async def test_sign_out_other_failure_still_clears(state, identity, tables, user_session) -> None:
    await _signed_in_with_data(state, identity, tables, user_session)
    identity.sign_out_error = BackendError("connection reset")

    await state.session.sign_out()

    _assert_all_empty(state)


@pytest.mark.asyncio
async def test_sign_out_without_session_is_noop(state, identity) -> None:
    await state.session.start()

    await state.session.sign_out()

    assert identity.sign_out_calls == 0
    _assert_all_empty(state)


@pytest.mark.asyncio
async def test_identity_events_switch_users(state, identity, tables, user_session) -> None:
    _seed(tables)
    tables["tasks"].rows.append(
        {"id": "t2", "user_id": "u2", "title": "b", "status": "Completed", "created_at": "2025-06-03"}
    )
    await sign_in(state, identity, user_session)

    await identity.emit(AuthEvent.SIGNED_IN, Session(user_id="u2", access_token="tok2"))

    assert state.session.user_id == "u2"
    assert [t.id for t in state.tasks.tasks] == ["t2"]
    assert state.links.links == ()

    await identity.emit(AuthEvent.SIGNED_OUT, None)
    _assert_all_empty(state)


@pytest.mark.asyncio
async def test_token_refresh_for_same_user_does_not_reload(state, identity, tables, user_session) -> None:
    _seed(tables)
    await sign_in(state, identity, user_session)
    selects_before = len(tables["tasks"].calls)

    await identity.emit(AuthEvent.TOKEN_REFRESHED, Session(user_id="u1", access_token="new"))

    assert len(tables["tasks"].calls) == selects_before
    assert state.session.session.access_token == "new"


@pytest.mark.asyncio
async def test_sign_in_failure_raises_auth_error(state, identity) -> None:
    await state.session.start()
    with pytest.raises(AuthError):
        await state.session.sign_in("ada@example.com", "wrong")
    assert state.session.user_id is None
