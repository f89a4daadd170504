import asyncio
from datetime import datetime, timezone

from agenda_engine.core.routine_agenda_planner import RoutineAgendaPlanner, TimeBlock, is_available
from agenda_engine.db.models import RoutineTask
from agenda_engine.db.repositories import agenda_items_repo, agenda_repo, routines_repo
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.session import session_scope

DATE = "2026-02-05"


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, 5, hour, minute, tzinfo=timezone.utc)


def _seed_routines(session_factory) -> dict[str, list[str]]:
    with session_scope(session_factory) as session:
        sleep = routines_repo.create_routine(session, name="Sleep", type="SLEEP", target="07:00-23:00")
        steps = routines_repo.create_routine(session, name="Walk", type="STEP", target="9000", separate_into=3)
        read = routines_repo.create_routine(session, name="Read", type="OTHER", target="20 pages")
        paused = routines_repo.create_routine(session, name="Paused", type="OTHER", target="1", status="PAUSED")
        return {
            "sleep": [t.id for t in sleep.tasks],
            "steps": [t.id for t in steps.tasks],
            "read": [t.id for t in read.tasks],
            "paused": [t.id for t in paused.tasks],
        }


def _items_by_task(session_factory) -> dict[str, object]:
    with session_scope(session_factory) as session:
        items = agenda_items_repo.list_items_for_date(session, DATE)
    return {item.routine_task_id or item.task_id: item for item in items}


def test_is_available_is_inclusive() -> None:
    occupied = [TimeBlock(start=_at(12), end=_at(12, 30))]
    assert is_available(_at(11, 59), occupied)
    assert not is_available(_at(12), occupied)
    assert not is_available(_at(12, 30), occupied)
    assert is_available(_at(12, 31), occupied)


def test_plan_places_routine_tasks(store, session_factory) -> None:
    ids = _seed_routines(session_factory)
    with session_scope(session_factory) as session:
        agenda = agenda_repo.create_agenda(session, DATE)
        agenda_items_repo.create_agenda_item(
            session, agenda.id, AgendaItemDraft(task_id="crm-1", start_at=_at(12), duration=30)
        )

    created = asyncio.run(RoutineAgendaPlanner(store, "UTC").plan_for_date(DATE))

    assert len(created) == 6
    items = _items_by_task(session_factory)
    wake_id, sleep_id = ids["sleep"]
    first, second, third = ids["steps"]
    assert items[wake_id].start_at == _at(7)
    assert items[sleep_id].start_at == _at(23)
    assert items[first].start_at == _at(8)
    # 12:00 collides with the existing meeting, so the segment becomes all-day.
    assert items[second].start_at is None
    assert items[third].start_at == _at(16)
    assert items[ids["read"][0]].start_at is None
    assert ids["paused"][0] not in items
    assert all(item.duration is None and item.task_id is None for item in created)


def test_plan_is_idempotent(store, session_factory) -> None:
    _seed_routines(session_factory)
    planner = RoutineAgendaPlanner(store, "UTC")

    first_run = asyncio.run(planner.plan_for_date(DATE))
    before = {key: item.start_at for key, item in _items_by_task(session_factory).items()}
    second_run = asyncio.run(planner.plan_for_date(DATE))
    after = {key: item.start_at for key, item in _items_by_task(session_factory).items()}

    assert len(first_run) == 6
    assert second_run == []
    assert before == after


def test_plan_respects_local_timezone(store, session_factory) -> None:
    ids = _seed_routines(session_factory)

    asyncio.run(RoutineAgendaPlanner(store, "Europe/Berlin").plan_for_date(DATE))

    items = _items_by_task(session_factory)
    assert items[ids["sleep"][0]].start_at == _at(6)
    assert items[ids["steps"][0]].start_at == _at(7)


def test_sleep_target_inside_busy_block_falls_back_to_all_day(store, session_factory) -> None:
    ids = _seed_routines(session_factory)
    with session_scope(session_factory) as session:
        agenda = agenda_repo.create_agenda(session, DATE)
        agenda_items_repo.create_agenda_item(
            session, agenda.id, AgendaItemDraft(task_id="gym", start_at=_at(6, 45), duration=15)
        )

    asyncio.run(RoutineAgendaPlanner(store, "UTC").plan_for_date(DATE))

    items = _items_by_task(session_factory)
    assert items[ids["sleep"][0]].start_at is None
    assert items[ids["sleep"][1]].start_at == _at(23)


def test_unparsable_sleep_target_becomes_all_day(store, session_factory) -> None:
    ids = _seed_routines(session_factory)
    with session_scope(session_factory) as session:
        session.get(RoutineTask, ids["sleep"][1]).target = "late"

    asyncio.run(RoutineAgendaPlanner(store, "UTC").plan_for_date(DATE))

    assert _items_by_task(session_factory)[ids["sleep"][1]].start_at is None


def test_no_active_routines_still_creates_agenda(store) -> None:
    created = asyncio.run(RoutineAgendaPlanner(store, "UTC").plan_for_date(DATE))

    assert created == []
    assert asyncio.run(store.get_agenda_by_date(DATE)) is not None


def test_default_date_is_today_in_zone(store, session_factory) -> None:
    _seed_routines(session_factory)
    now = datetime(2026, 2, 5, 23, 30, tzinfo=timezone.utc)

    asyncio.run(RoutineAgendaPlanner(store, "Asia/Tokyo").plan_for_date(now=now))

    assert asyncio.run(store.get_agenda_by_date("2026-02-06")) is not None
    assert asyncio.run(store.get_agenda_by_date(DATE)) is None
