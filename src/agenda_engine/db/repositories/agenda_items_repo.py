from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from agenda_engine.core.date_keys import parse_date_key
from agenda_engine.db.models import AGENDA_ITEM_STATUSES, Agenda, AgendaItem, AgendaItemLog, RoutineTask
from agenda_engine.errors import NotFoundError, ValidationError

_UPDATABLE_FIELDS = frozenset(
    {"agenda_id", "type", "status", "start_at", "duration", "position", "notes", "notification_id"}
)


@dataclass(slots=True)
class AgendaItemDraft:
    task_id: str | None = None
    routine_task_id: str | None = None
    start_at: datetime | None = None
    duration: int | None = None
    type: str = "TASK"
    status: str = "PENDING"
    notes: str | None = None
    notification_id: str | None = None
    position: int | None = None


def _json_default(value) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _dump(value: dict | None) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=_json_default)


def _with_routine():
    return selectinload(AgendaItem.routine_task).selectinload(RoutineTask.routine)


def _validate_status(status: str) -> None:
    if status not in AGENDA_ITEM_STATUSES:
        raise ValidationError(f"Invalid agenda item status: {status}")


def get_agenda_item(session: Session, item_id: str) -> AgendaItem | None:
    return session.scalar(select(AgendaItem).options(_with_routine()).where(AgendaItem.id == item_id))


def list_items_by_agenda(session: Session, agenda_id: str) -> list[AgendaItem]:
    return list(
        session.scalars(
            select(AgendaItem)
            .options(_with_routine())
            .where(AgendaItem.agenda_id == agenda_id)
            .order_by(AgendaItem.position.asc())
        ).all()
    )


def list_items_for_date(session: Session, date_key: str) -> list[AgendaItem]:
    parse_date_key(date_key)
    return list(
        session.scalars(
            select(AgendaItem)
            .join(Agenda, Agenda.id == AgendaItem.agenda_id)
            .options(_with_routine())
            .where(Agenda.date == date_key)
            .order_by(AgendaItem.position.asc())
        ).all()
    )


def list_items_in_range(session: Session, start_key: str, end_key: str) -> dict[str, list[AgendaItem]]:
    parse_date_key(start_key)
    parse_date_key(end_key)
    rows = session.execute(
        select(Agenda.date, AgendaItem)
        .select_from(AgendaItem)
        .join(Agenda, Agenda.id == AgendaItem.agenda_id)
        .options(_with_routine())
        .where(Agenda.date >= start_key, Agenda.date <= end_key)
        .order_by(Agenda.date.asc(), AgendaItem.position.asc())
    ).all()
    by_date: dict[str, list[AgendaItem]] = {}
    for date_key, item in rows:
        by_date.setdefault(date_key, []).append(item)
    return by_date


def _next_position(session: Session, agenda_id: str) -> int:
    current = session.scalar(select(func.max(AgendaItem.position)).where(AgendaItem.agenda_id == agenda_id))
    return 0 if current is None else int(current) + 1


def create_agenda_item(session: Session, agenda_id: str, draft: AgendaItemDraft) -> AgendaItem:
    if draft.task_id and draft.routine_task_id:
        raise ValidationError("Agenda item references either a task or a routine task, not both")
    if draft.duration is not None and draft.duration < 0:
        raise ValidationError("Duration must be >= 0")
    _validate_status(draft.status)
    if session.get(Agenda, agenda_id) is None:
        raise NotFoundError("Agenda not found")

    item = AgendaItem(
        agenda_id=agenda_id,
        task_id=draft.task_id,
        routine_task_id=draft.routine_task_id,
        type=draft.type,
        status=draft.status,
        start_at=draft.start_at,
        duration=draft.duration,
        position=draft.position if draft.position is not None else _next_position(session, agenda_id),
        notes=draft.notes,
        notification_id=draft.notification_id,
    )
    session.add(item)
    session.flush()
    return item


def update_agenda_item(session: Session, item_id: str, **fields) -> AgendaItem:
    item = get_agenda_item(session, item_id)
    if item is None:
        raise NotFoundError("AgendaItem not found")

    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unsupported agenda item fields: {sorted(unknown)}")
    if "status" in fields:
        _validate_status(fields["status"])
    if fields.get("duration") is not None and fields["duration"] < 0:
        raise ValidationError("Duration must be >= 0")

    for key, value in fields.items():
        setattr(item, key, value)
    item.updated_at = datetime.now(timezone.utc)
    session.flush()
    return item


def append_item_log(
    session: Session,
    item_id: str,
    log_type: str,
    *,
    previous_value: dict | None = None,
    new_value: dict | None = None,
    notes: str | None = None,
) -> AgendaItemLog:
    log = AgendaItemLog(
        agenda_item_id=item_id,
        type=log_type,
        previous_value_json=_dump(previous_value),
        new_value_json=_dump(new_value),
        notes=notes,
    )
    session.add(log)
    session.flush()
    return log


def list_expiry_candidates(session: Session) -> list[AgendaItem]:
    return list(
        session.scalars(
            select(AgendaItem).where(
                AgendaItem.status == "PENDING",
                AgendaItem.start_at.is_not(None),
                AgendaItem.duration.is_not(None),
                AgendaItem.duration > 0,
            )
        ).all()
    )
