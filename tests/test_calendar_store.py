# tests/test_calendar_store.py

from __future__ import annotations

from datetime import date

import pytest

from .fakes import sign_in


def _event(id_: str, day: str, **extra):
    return {"id": id_, "user_id": "u1", "title": f"event {id_}", "date": day, "completed": False, **extra}


@pytest.mark.asyncio
async def test_events_load_ordered_by_date(state, identity, tables, user_session) -> None:
    tables["calendar"].rows = [_event("b", "2025-06-20"), _event("a", "2025-06-02")]

    await sign_in(state, identity, user_session)

    assert [ev.id for ev in state.calendar.events] == ["a", "b"]
    assert tables["calendar"].calls[0][1]["order"] == "date"
    assert tables["calendar"].calls[0][1]["ascending"] is True


@pytest.mark.asyncio
async def test_create_event_requires_title_and_user(state, identity, tables, user_session) -> None:
    assert await state.calendar.create(title="x", event_date=date(2025, 6, 1)) is None

    await sign_in(state, identity, user_session)
    assert await state.calendar.create(title="   ", event_date=date(2025, 6, 1)) is None

    ev = await state.calendar.create(title="Dentist", event_date=date(2025, 6, 18), description="10am")
    assert ev is not None
    assert ev.date == date(2025, 6, 18)
    assert ev.completed is False
    inserted = tables["calendar"].calls[-1][1]
    assert inserted == {
        "user_id": "u1",
        "title": "Dentist",
        "description": "10am",
        "date": "2025-06-18",
        "completed": False,
    }


@pytest.mark.asyncio
async def test_update_merges_and_converts_date(state, identity, tables, user_session) -> None:
    tables["calendar"].rows = [_event("a", "2025-06-02")]
    await sign_in(state, identity, user_session)

    assert await state.calendar.update("a", {"date": date(2025, 6, 9), "title": "moved", "id": "zzz"})

    ev = state.calendar.get("a")
    assert ev is not None
    assert ev.date == date(2025, 6, 9)
    assert ev.title == "moved"
    assert tables["calendar"].calls[-1] == (
        "update",
        {"fields": {"date": "2025-06-09", "title": "moved"}, "eq": {"id": "a", "user_id": "u1"}},
    )


@pytest.mark.asyncio
async def test_toggle_and_delete(state, identity, tables, user_session) -> None:
    tables["calendar"].rows = [_event("a", "2025-06-02")]
    await sign_in(state, identity, user_session)

    assert await state.calendar.toggle_completed("a")
    assert state.calendar.get("a").completed is True

    tables["calendar"].failing = True
    assert await state.calendar.delete("a") is False
    assert state.calendar.get("a") is not None

    tables["calendar"].failing = False
    assert await state.calendar.delete("a") is True
    assert state.calendar.events == ()


@pytest.mark.asyncio
async def test_row_without_date_fails_the_fetch(state, identity, tables, user_session) -> None:
    tables["calendar"].rows = [_event("a", "")]

    await sign_in(state, identity, user_session)

    assert state.calendar.events == ()
    assert state.calendar.last_error is not None
