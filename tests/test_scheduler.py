import asyncio
from datetime import datetime, timedelta, timezone

from agenda_engine.db.repositories import agenda_items_repo, agenda_repo
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.session import session_scope
from agenda_engine.scheduler import AgendaScheduler, run_tick


def test_run_tick_swallows_and_reports_failures() -> None:
    async def broken() -> None:
        raise RuntimeError("db locked")

    async def fine() -> str:
        return "ok"

    assert asyncio.run(run_tick("broken", broken)) is False
    assert asyncio.run(run_tick("fine", fine)) is True


def test_expiry_tick_marks_overdue_items(store, session_factory) -> None:
    long_ago = datetime.now(timezone.utc) - timedelta(days=2)
    with session_scope(session_factory) as session:
        agenda = agenda_repo.create_agenda(session, long_ago.date().isoformat())
        agenda_items_repo.create_agenda_item(
            session, agenda.id, AgendaItemDraft(task_id="crm-1", start_at=long_ago, duration=30)
        )

    result = asyncio.run(AgendaScheduler(store, "UTC").run_expiry_tick())

    assert result.marked_count == 1


def test_planning_ticks_run_without_routines(store) -> None:
    scheduler = AgendaScheduler(store, "UTC")

    assert asyncio.run(scheduler.run_agenda_plan_tick()) == []
    assert asyncio.run(scheduler.run_alarm_plan_tick()) == []
