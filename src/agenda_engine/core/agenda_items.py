from __future__ import annotations

from datetime import datetime
from typing import Any

from loguru import logger

from agenda_engine.core.date_keys import DateKey, as_utc, parse_date_key, utc_now
from agenda_engine.db.models import AgendaItem
from agenda_engine.db.store import AgendaStore
from agenda_engine.errors import NotFoundError


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


async def _require_item(store: AgendaStore, item_id: str) -> AgendaItem:
    item = await store.get_agenda_item(item_id)
    if item is None:
        raise NotFoundError("AgendaItem not found")
    return item


async def complete_agenda_item(
    store: AgendaStore,
    item_id: str,
    *,
    completed_at: datetime | None = None,
    notes: str | None = None,
) -> AgendaItem:
    item = await _require_item(store, item_id)
    previous_status = item.status
    done_at = as_utc(completed_at) if completed_at is not None else utc_now()

    updated = await store.update_agenda_item(item_id, status="COMPLETED", notes=notes or item.notes)
    await store.append_item_log(
        item_id,
        "COMPLETED",
        previous_value={"status": previous_status},
        new_value={"status": "COMPLETED", "completed_at": done_at.isoformat()},
        notes=notes,
    )
    logger.info("agenda item completed id={} previous_status={}", item_id, previous_status)
    return updated


async def reschedule_agenda_item(
    store: AgendaStore,
    item_id: str,
    new_date: DateKey,
    *,
    start_at: datetime | None = UNSET,
    duration: int | None = UNSET,
) -> AgendaItem:
    """Move an item to another day's agenda; time and duration carry over unless given."""
    parse_date_key(new_date)
    item = await _require_item(store, item_id)

    agenda = await store.get_agenda_by_date(new_date)
    if agenda is None:
        agenda = await store.create_agenda(new_date)

    fields: dict[str, Any] = {"agenda_id": agenda.id}
    if start_at is not UNSET:
        fields["start_at"] = as_utc(start_at) if start_at is not None else None
    if duration is not UNSET:
        fields["duration"] = duration

    updated = await store.update_agenda_item(item_id, **fields)
    await store.append_item_log(
        item_id,
        "RESCHEDULED",
        previous_value={
            "agenda_id": item.agenda_id,
            "start_at": item.start_at.isoformat() if item.start_at else None,
            "duration": item.duration,
        },
        new_value={
            "agenda_id": updated.agenda_id,
            "date": new_date,
            "start_at": updated.start_at.isoformat() if updated.start_at else None,
            "duration": updated.duration,
        },
    )
    logger.info("agenda item rescheduled id={} date={}", item_id, new_date)
    return updated
