import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from agenda_engine.core.routine_alarm_planner import STEP_ALARM_COOLDOWN_MINUTES, RoutineAlarmPlanner
from agenda_engine.db.models import AlarmPlan, RoutineTask
from agenda_engine.db.repositories import routines_repo
from agenda_engine.db.session import session_scope


def _at(hour: int, minute: int = 0, day: int = 5) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=timezone.utc)


def _create_routine(session_factory, **kwargs):
    with session_scope(session_factory) as session:
        return routines_repo.create_routine(session, **kwargs)


def _log(session_factory, task_id: str, value: float, created_at: datetime) -> None:
    with session_scope(session_factory) as session:
        routines_repo.add_task_log(session, task_id, value, created_at=created_at)


def _plans(session_factory, task_id: str):
    with session_scope(session_factory) as session:
        return list(session.scalars(select(AlarmPlan).where(AlarmPlan.routine_task_id == task_id)).all())


def test_sleep_routine_creates_wake_and_sleep_plans_once(store, session_factory) -> None:
    routine = _create_routine(
        session_factory, name="Sleep", type="SLEEP", target="07:00-23:00", repeat_interval_minutes=5
    )
    wake_task, sleep_task = routine.tasks
    planner = RoutineAlarmPlanner(store, "UTC")

    created = asyncio.run(planner.plan_for_active_routines(now=_at(6)))
    again = asyncio.run(planner.plan_for_active_routines(now=_at(6, 30)))

    assert again == []
    by_task = {plan.routine_task_id: plan for plan in created}
    assert by_task[wake_task.id].type == "WAKE"
    assert by_task[wake_task.id].target_at == _at(7)
    assert by_task[sleep_task.id].type == "SLEEP"
    assert by_task[sleep_task.id].target_at == _at(23)
    assert by_task[sleep_task.id].repeat_interval_minutes == 5
    assert by_task[sleep_task.id].meta == {"routine_id": routine.id, "routine_type": "SLEEP"}


def test_sleep_plans_are_per_local_day(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Sleep", type="SLEEP", target="07:00-23:00")
    planner = RoutineAlarmPlanner(store, "UTC")

    asyncio.run(planner.plan_for_active_routines(now=_at(6)))
    next_day = asyncio.run(planner.plan_for_active_routines(now=_at(6, day=6)))

    assert len(next_day) == 2
    assert {plan.target_at for plan in next_day} == {_at(7, day=6), _at(23, day=6)}
    assert len(_plans(session_factory, routine.tasks[0].id)) == 2


def test_sleep_task_with_unparsable_target_is_skipped(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Sleep", type="SLEEP", target="07:00-23:00")
    with session_scope(session_factory) as session:
        session.get(RoutineTask, routine.tasks[0].id).target = "dawn"

    created = asyncio.run(RoutineAlarmPlanner(store, "UTC").plan_for_active_routines(now=_at(6)))

    assert [plan.type for plan in created] == ["SLEEP"]


def test_step_alarm_skipped_when_ahead_of_pace(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1440")
    task_id = routine.tasks[0].id
    _log(session_factory, task_id, 12, _at(0, 5))

    # 1440 steps a day over 10 elapsed minutes: expected 10, actual 12.
    created = asyncio.run(RoutineAlarmPlanner(store, "UTC").plan_for_active_routines(now=_at(0, 10)))

    assert created == []
    assert _plans(session_factory, task_id) == []


def test_step_alarm_created_when_behind_pace(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1440", repeat_interval_minutes=15)
    task_id = routine.tasks[0].id
    _log(session_factory, task_id, 100, _at(9))
    _log(session_factory, task_id, 500, _at(12, 30))

    created = asyncio.run(RoutineAlarmPlanner(store, "UTC").plan_for_active_routines(now=_at(12)))

    assert len(created) == 1
    plan = created[0]
    assert plan.type == "STEP"
    assert plan.routine_task_id == task_id
    assert plan.target_at == _at(12)
    assert plan.repeat_interval_minutes == 15
    assert plan.meta == {"routine_id": routine.id, "expected": 720, "actual": 100}


def test_step_alarm_respects_cooldown(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1440")
    task_id = routine.tasks[0].id
    _log(session_factory, task_id, 100, _at(9))
    planner = RoutineAlarmPlanner(store, "UTC")

    asyncio.run(planner.plan_for_active_routines(now=_at(12)))
    during_cooldown = asyncio.run(planner.plan_for_active_routines(now=_at(12, STEP_ALARM_COOLDOWN_MINUTES - 10)))
    after_cooldown = asyncio.run(planner.plan_for_active_routines(now=_at(12, STEP_ALARM_COOLDOWN_MINUTES + 10)))

    assert during_cooldown == []
    assert len(after_cooldown) == 1
    assert after_cooldown[0].meta["expected"] == 760
    assert len(_plans(session_factory, task_id)) == 2


def test_step_alarm_suppressed_when_progress_since_last_plan(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1440")
    task_id = routine.tasks[0].id
    _log(session_factory, task_id, 100, _at(9))
    planner = RoutineAlarmPlanner(store, "UTC")
    asyncio.run(planner.plan_for_active_routines(now=_at(12)))

    # Still behind pace (expected 780), but more steps than at the previous reminder.
    _log(session_factory, task_id, 50, _at(12, 30))
    created = asyncio.run(planner.plan_for_active_routines(now=_at(13)))

    assert created == []
    assert len(_plans(session_factory, task_id)) == 1


def test_step_alarm_ignores_closed_plans(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1440")
    task_id = routine.tasks[0].id
    planner = RoutineAlarmPlanner(store, "UTC")
    first = asyncio.run(planner.plan_for_active_routines(now=_at(12)))
    with session_scope(session_factory) as session:
        session.get(AlarmPlan, first[0].id).status = "DONE"

    created = asyncio.run(planner.plan_for_active_routines(now=_at(12) + timedelta(minutes=5)))

    assert len(created) == 1


def test_step_routine_with_non_numeric_target_is_skipped(store, session_factory) -> None:
    routine = _create_routine(session_factory, name="Walk", type="STEP", target="1000")
    with session_scope(session_factory) as session:
        session.get(RoutineTask, routine.tasks[0].id).target = "lots"

    created = asyncio.run(RoutineAlarmPlanner(store, "UTC").plan_for_active_routines(now=_at(12)))

    assert created == []


def test_other_routines_are_ignored(store, session_factory) -> None:
    _create_routine(session_factory, name="Read", type="OTHER", target="07:00")

    assert asyncio.run(RoutineAlarmPlanner(store, "UTC").plan_for_active_routines(now=_at(6))) == []
