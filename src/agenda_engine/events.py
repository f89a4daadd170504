from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from loguru import logger

from agenda_engine.core.date_keys import utc_now
from agenda_engine.db.models import Agenda, AgendaItem, AgendaItemLog, AlarmPlan, Routine, RoutineTaskLog
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.repositories.alarm_plans_repo import AlarmPlanDraft
from agenda_engine.db.store import AgendaStore


@dataclass(frozen=True, slots=True)
class EntityEvent:
    entity_type: str
    change_type: str
    entity_id: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.entity_type}.{self.change_type}"


Listener = Callable[[EntityEvent], None]


class EventBus:
    """In-process fan-out keyed by glob patterns such as ``agenda_item.*``."""

    def __init__(self) -> None:
        self._listeners: list[tuple[str, Listener]] = []

    def subscribe(self, pattern: str, listener: Listener) -> Callable[[], None]:
        entry = (pattern, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def publish(self, event: EntityEvent) -> int:
        delivered = 0
        for pattern, listener in list(self._listeners):
            if not fnmatch.fnmatchcase(event.name, pattern):
                continue
            try:
                listener(event)
                delivered += 1
            except Exception as exc:
                logger.error("event listener failed event={} pattern={} error={}", event.name, pattern, exc)
        logger.debug("event published name={} id={} delivered={}", event.name, event.entity_id, delivered)
        return delivered


def _item_data(item: AgendaItem) -> dict[str, Any]:
    return {
        "agenda_id": item.agenda_id,
        "task_id": item.task_id,
        "routine_task_id": item.routine_task_id,
        "status": item.status,
        "start_at": item.start_at.isoformat() if item.start_at else None,
        "duration": item.duration,
    }


def _routine_data(routine: Routine) -> dict[str, Any]:
    return {
        "name": routine.name,
        "type": routine.type,
        "status": routine.status,
        "target": routine.target,
        "separate_into": routine.separate_into,
    }


class EventPublishingStore:
    """Forwards every call to ``inner`` and publishes after successful writes."""

    def __init__(self, inner: AgendaStore, bus: EventBus, *, source: str = "agenda-engine") -> None:
        self._inner = inner
        self._bus = bus
        self._source = source

    def _emit(self, entity_type: str, change_type: str, entity_id: str, data: dict[str, Any]) -> None:
        self._bus.publish(
            EntityEvent(
                entity_type=entity_type,
                change_type=change_type,
                entity_id=entity_id,
                timestamp=utc_now(),
                data=data,
                metadata={"source": self._source},
            )
        )

    async def get_agenda_by_date(self, date_key: str) -> Agenda | None:
        return await self._inner.get_agenda_by_date(date_key)

    async def create_agenda(self, date_key: str) -> Agenda:
        agenda = await self._inner.create_agenda(date_key)
        self._emit("agenda", "added", agenda.id, {"date": agenda.date})
        return agenda

    async def get_agenda_item(self, item_id: str) -> AgendaItem | None:
        return await self._inner.get_agenda_item(item_id)

    async def get_agenda_items(self, date_key: str) -> list[AgendaItem]:
        return await self._inner.get_agenda_items(date_key)

    async def list_agenda_items_in_range(self, start_key: str, end_key: str) -> dict[str, list[AgendaItem]]:
        return await self._inner.list_agenda_items_in_range(start_key, end_key)

    async def list_items_by_agenda(self, agenda_id: str) -> list[AgendaItem]:
        return await self._inner.list_items_by_agenda(agenda_id)

    async def create_agenda_item(self, agenda_id: str, draft: AgendaItemDraft) -> AgendaItem:
        item = await self._inner.create_agenda_item(agenda_id, draft)
        self._emit("agenda_item", "added", item.id, _item_data(item))
        return item

    async def update_agenda_item(self, item_id: str, **fields: Any) -> AgendaItem:
        item = await self._inner.update_agenda_item(item_id, **fields)
        data = _item_data(item)
        data["changed_fields"] = sorted(fields)
        self._emit("agenda_item", "modified", item.id, data)
        return item

    async def append_item_log(
        self,
        item_id: str,
        log_type: str,
        *,
        previous_value: dict | None = None,
        new_value: dict | None = None,
        notes: str | None = None,
    ) -> AgendaItemLog:
        return await self._inner.append_item_log(
            item_id, log_type, previous_value=previous_value, new_value=new_value, notes=notes
        )

    async def list_expiry_candidates(self) -> list[AgendaItem]:
        return await self._inner.list_expiry_candidates()

    async def list_active_routines_with_tasks(self) -> list[Routine]:
        return await self._inner.list_active_routines_with_tasks()

    async def create_routine(
        self,
        *,
        name: str,
        type: str,
        target: str,
        separate_into: int = 1,
        status: str = "ACTIVE",
        repeat_interval_minutes: int | None = None,
    ) -> Routine:
        routine = await self._inner.create_routine(
            name=name,
            type=type,
            target=target,
            separate_into=separate_into,
            status=status,
            repeat_interval_minutes=repeat_interval_minutes,
        )
        self._emit("routine", "added", routine.id, _routine_data(routine))
        return routine

    async def regenerate_routine_tasks(
        self, routine_id: str, *, target: str | None = None, separate_into: int | None = None
    ) -> Routine:
        routine = await self._inner.regenerate_routine_tasks(routine_id, target=target, separate_into=separate_into)
        self._emit("routine", "modified", routine.id, _routine_data(routine))
        return routine

    async def set_routine_status(self, routine_id: str, status: str) -> Routine:
        routine = await self._inner.set_routine_status(routine_id, status)
        self._emit("routine", "modified", routine.id, _routine_data(routine))
        return routine

    async def add_task_log(
        self, routine_task_id: str, value: float, *, created_at: datetime | None = None
    ) -> RoutineTaskLog:
        log = await self._inner.add_task_log(routine_task_id, value, created_at=created_at)
        self._emit("routine_task_log", "added", log.id, {"routine_task_id": routine_task_id, "value": log.value})
        return log

    async def list_logs_for_tasks(
        self, task_ids: Iterable[str], since: datetime, until: datetime | None = None
    ) -> list[RoutineTaskLog]:
        return await self._inner.list_logs_for_tasks(task_ids, since, until)

    async def create_alarm_plan(self, draft: AlarmPlanDraft) -> AlarmPlan:
        plan = await self._inner.create_alarm_plan(draft)
        self._emit(
            "alarm_plan",
            "added",
            plan.id,
            {
                "routine_task_id": plan.routine_task_id,
                "type": plan.type,
                "target_at": plan.target_at.isoformat(),
            },
        )
        return plan

    async def find_alarm_plan(
        self,
        *,
        routine_task_id: str,
        type: str | None = None,
        statuses: Iterable[str] | None = None,
        target_from: datetime | None = None,
        target_to: datetime | None = None,
    ) -> AlarmPlan | None:
        return await self._inner.find_alarm_plan(
            routine_task_id=routine_task_id,
            type=type,
            statuses=statuses,
            target_from=target_from,
            target_to=target_to,
        )
