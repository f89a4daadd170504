import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from agenda_engine.core.agenda_items import complete_agenda_item, reschedule_agenda_item
from agenda_engine.db.models import AgendaItemLog
from agenda_engine.db.repositories import agenda_items_repo, agenda_repo, routines_repo
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.session import session_scope
from agenda_engine.errors import NotFoundError, ValidationError

START = datetime(2026, 2, 5, 9, 0, tzinfo=timezone.utc)


def _seed_item(session_factory, **kwargs) -> str:
    with session_scope(session_factory) as session:
        agenda = agenda_repo.create_agenda(session, "2026-02-05")
        draft = AgendaItemDraft(task_id="crm-1", start_at=START, duration=45, **kwargs)
        return agenda_items_repo.create_agenda_item(session, agenda.id, draft).id


def _logs(session_factory, item_id: str):
    with session_scope(session_factory) as session:
        return list(
            session.scalars(
                select(AgendaItemLog)
                .where(AgendaItemLog.agenda_item_id == item_id)
                .order_by(AgendaItemLog.created_at.asc())
            ).all()
        )


def test_complete_keeps_notes_and_logs(store, session_factory) -> None:
    item_id = _seed_item(session_factory, notes="bring laptop")
    done_at = datetime(2026, 2, 5, 10, 0, tzinfo=timezone.utc)

    updated = asyncio.run(complete_agenda_item(store, item_id, completed_at=done_at))

    assert updated.status == "COMPLETED"
    assert updated.notes == "bring laptop"
    logs = _logs(session_factory, item_id)
    assert [log.type for log in logs] == ["COMPLETED"]
    assert logs[0].previous_value == {"status": "PENDING"}
    assert logs[0].new_value == {"status": "COMPLETED", "completed_at": done_at.isoformat()}


def test_complete_replaces_notes_when_given(store, session_factory) -> None:
    item_id = _seed_item(session_factory, notes="old")

    updated = asyncio.run(complete_agenda_item(store, item_id, notes="done early"))

    assert updated.notes == "done early"
    assert _logs(session_factory, item_id)[0].notes == "done early"


def test_complete_missing_item(store) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(complete_agenda_item(store, "missing"))


def test_reschedule_creates_target_agenda_and_keeps_time(store, session_factory) -> None:
    item_id = _seed_item(session_factory)

    updated = asyncio.run(reschedule_agenda_item(store, item_id, "2026-02-09"))

    target = asyncio.run(store.get_agenda_by_date("2026-02-09"))
    assert target is not None
    assert updated.agenda_id == target.id
    assert updated.start_at == START
    assert updated.duration == 45
    assert [item.id for item in asyncio.run(store.get_agenda_items("2026-02-09"))] == [item_id]
    assert asyncio.run(store.get_agenda_items("2026-02-05")) == []
    log = _logs(session_factory, item_id)[0]
    assert log.type == "RESCHEDULED"
    assert log.new_value["date"] == "2026-02-09"


def test_reschedule_can_clear_start_and_change_duration(store, session_factory) -> None:
    item_id = _seed_item(session_factory)

    updated = asyncio.run(reschedule_agenda_item(store, item_id, "2026-02-06", start_at=None, duration=90))

    assert updated.start_at is None
    assert updated.duration == 90


def test_reschedule_validates_date(store, session_factory) -> None:
    item_id = _seed_item(session_factory)
    with pytest.raises(ValidationError):
        asyncio.run(reschedule_agenda_item(store, item_id, "2026-02-30"))


def test_store_rejects_task_and_routine_task_together(store) -> None:
    agenda = asyncio.run(store.create_agenda("2026-02-05"))
    with pytest.raises(ValidationError):
        asyncio.run(
            store.create_agenda_item(agenda.id, AgendaItemDraft(task_id="crm-1", routine_task_id="rt-1"))
        )


def test_store_update_unknown_item(store) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(store.update_agenda_item("missing", status="COMPLETED"))


def test_store_appends_positions_and_groups_range(store) -> None:
    async def scenario():
        first_day = await store.create_agenda("2026-02-05")
        second_day = await store.create_agenda("2026-02-07")
        a = await store.create_agenda_item(first_day.id, AgendaItemDraft(task_id="a"))
        b = await store.create_agenda_item(first_day.id, AgendaItemDraft(task_id="b"))
        await store.create_agenda_item(second_day.id, AgendaItemDraft(task_id="c"))
        grouped = await store.list_agenda_items_in_range("2026-02-01", "2026-02-06")
        return a, b, grouped

    a, b, grouped = asyncio.run(scenario())

    assert (a.position, b.position) == (0, 1)
    assert list(grouped) == ["2026-02-05"]
    assert [item.task_id for item in grouped["2026-02-05"]] == ["a", "b"]


def test_completed_routine_item_keeps_routine_loaded(store, session_factory) -> None:
    with session_scope(session_factory) as session:
        routine = routines_repo.create_routine(session, name="Read", type="OTHER", target="20 pages")
        agenda = agenda_repo.create_agenda(session, "2026-02-05")
        draft = AgendaItemDraft(routine_task_id=routine.tasks[0].id, start_at=START, duration=20)
        item_id = agenda_items_repo.create_agenda_item(session, agenda.id, draft).id

    updated = asyncio.run(complete_agenda_item(store, item_id))

    assert updated.routine_task.routine.type == "OTHER"
    assert updated.routine_task.routine.name == "Read"
