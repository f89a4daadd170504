from __future__ import annotations

from datetime import datetime

from loguru import logger

from agenda_engine.core.date_keys import as_utc, utc_now
from agenda_engine.core.routine_agenda_planner import RoutineAgendaPlanner
from agenda_engine.core.routine_tasks import validate_separate_into
from agenda_engine.db.models import Routine, RoutineTaskLog
from agenda_engine.db.store import AgendaStore
from agenda_engine.errors import ValidationError


async def create_routine(
    store: AgendaStore,
    *,
    name: str,
    type: str,
    target: str,
    separate_into: int = 1,
    status: str = "ACTIVE",
    repeat_interval_minutes: int | None = None,
    planner: RoutineAgendaPlanner | None = None,
    now: datetime | None = None,
) -> Routine:
    """Store a routine with its generated tasks, then place them on today's agenda."""
    validate_separate_into(separate_into)
    routine = await store.create_routine(
        name=name,
        type=type,
        target=target,
        separate_into=separate_into,
        status=status,
        repeat_interval_minutes=repeat_interval_minutes,
    )
    logger.info("routine created id={} type={} tasks={}", routine.id, routine.type, len(routine.tasks))
    await (planner or RoutineAgendaPlanner(store)).plan_for_date(now=now)
    return routine


async def update_routine(
    store: AgendaStore,
    routine_id: str,
    *,
    target: str | None = None,
    separate_into: int | None = None,
    status: str | None = None,
    planner: RoutineAgendaPlanner | None = None,
    now: datetime | None = None,
) -> Routine:
    """
    Apply a status change and/or a new target/split.
    A new target or split rebuilds the tasks and re-plans today's agenda.
    """
    if target is None and separate_into is None and status is None:
        raise ValidationError("Nothing to update")
    if separate_into is not None:
        validate_separate_into(separate_into)

    routine: Routine | None = None
    if status is not None:
        routine = await store.set_routine_status(routine_id, status)
        logger.info("routine status id={} status={}", routine_id, status)
    if target is not None or separate_into is not None:
        routine = await store.regenerate_routine_tasks(routine_id, target=target, separate_into=separate_into)
        logger.info("routine tasks rebuilt id={} tasks={}", routine_id, len(routine.tasks))
        await (planner or RoutineAgendaPlanner(store)).plan_for_date(now=now)
    return routine


async def log_routine_progress(
    store: AgendaStore,
    routine_task_id: str,
    value: float,
    *,
    logged_at: datetime | None = None,
) -> RoutineTaskLog:
    log = await store.add_task_log(routine_task_id, value, created_at=as_utc(logged_at) if logged_at else utc_now())
    logger.debug("routine progress task={} value={}", routine_task_id, value)
    return log
