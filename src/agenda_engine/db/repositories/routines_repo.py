from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from agenda_engine.core.routine_tasks import build_routine_tasks, validate_separate_into
from agenda_engine.db.models import ROUTINE_STATUSES, ROUTINE_TYPES, Routine, RoutineTask, RoutineTaskLog
from agenda_engine.errors import NotFoundError, ValidationError


def create_routine(
    session: Session,
    *,
    name: str,
    type: str,
    target: str,
    separate_into: int = 1,
    status: str = "ACTIVE",
    repeat_interval_minutes: int | None = None,
) -> Routine:
    if type not in ROUTINE_TYPES:
        raise ValidationError(f"Invalid routine type: {type}")
    if status not in ROUTINE_STATUSES:
        raise ValidationError(f"Invalid routine status: {status}")

    drafts = build_routine_tasks(type, name, target, separate_into)
    routine = Routine(
        name=name,
        type=type,
        status=status,
        target=target,
        separate_into=separate_into,
        repeat_interval_minutes=repeat_interval_minutes,
    )
    routine.tasks = [RoutineTask(name=d.name, target=d.target, position=d.position) for d in drafts]
    session.add(routine)
    session.flush()
    return routine


def regenerate_routine_tasks(
    session: Session,
    routine_id: str,
    *,
    target: str | None = None,
    separate_into: int | None = None,
) -> Routine:
    """Rebuild a routine's tasks from its (optionally new) target and split."""
    if separate_into is not None:
        validate_separate_into(separate_into)
    routine = session.get(Routine, routine_id, options=[selectinload(Routine.tasks)])
    if routine is None:
        raise NotFoundError("Routine not found")
    if target is not None:
        routine.target = target
    if separate_into is not None:
        routine.separate_into = separate_into
    drafts = build_routine_tasks(routine.type, routine.name, routine.target, routine.separate_into)
    routine.tasks = [RoutineTask(name=d.name, target=d.target, position=d.position) for d in drafts]
    routine.updated_at = datetime.now(timezone.utc)
    session.flush()
    return routine


def set_routine_status(session: Session, routine_id: str, status: str) -> Routine:
    if status not in ROUTINE_STATUSES:
        raise ValidationError(f"Invalid routine status: {status}")
    routine = session.get(Routine, routine_id, options=[selectinload(Routine.tasks)])
    if routine is None:
        raise NotFoundError("Routine not found")
    routine.status = status
    session.flush()
    return routine


def list_active_routines_with_tasks(session: Session) -> list[Routine]:
    return list(
        session.scalars(
            select(Routine)
            .options(selectinload(Routine.tasks))
            .where(Routine.status == "ACTIVE")
            .order_by(Routine.created_at.asc())
        ).all()
    )


def add_task_log(
    session: Session,
    routine_task_id: str,
    value: float,
    *,
    created_at: datetime | None = None,
) -> RoutineTaskLog:
    if session.get(RoutineTask, routine_task_id) is None:
        raise NotFoundError("Routine task not found")
    log = RoutineTaskLog(
        routine_task_id=routine_task_id,
        value=value,
        created_at=created_at or datetime.now(timezone.utc),
    )
    session.add(log)
    session.flush()
    return log


def list_logs_for_tasks(
    session: Session,
    task_ids: Iterable[str],
    since: datetime,
    until: datetime | None = None,
) -> list[RoutineTaskLog]:
    ids = list(task_ids)
    if not ids:
        return []
    stmt = select(RoutineTaskLog).where(
        RoutineTaskLog.routine_task_id.in_(ids),
        RoutineTaskLog.created_at >= since,
    )
    if until is not None:
        stmt = stmt.where(RoutineTaskLog.created_at <= until)
    return list(session.scalars(stmt.order_by(RoutineTaskLog.created_at.asc())).all())
