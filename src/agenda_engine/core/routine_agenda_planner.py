from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from loguru import logger

from agenda_engine.config import settings
from agenda_engine.core.date_keys import (
    DateKey,
    as_utc,
    parse_date_key,
    resolve_timezone,
    time_on_date,
    today_key,
)
from agenda_engine.db.models import Agenda, AgendaItem, RoutineTask
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.store import AgendaStore

STEP_WINDOW_START = "08:00"
STEP_WINDOW_END = "20:00"


@dataclass(frozen=True, slots=True)
class TimeBlock:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


def collect_occupied(items: Iterable[AgendaItem]) -> list[TimeBlock]:
    blocks: list[TimeBlock] = []
    for item in items:
        if item.start_at is None:
            continue
        start = as_utc(item.start_at)
        blocks.append(TimeBlock(start=start, end=start + timedelta(minutes=item.duration or 0)))
    return blocks


def is_available(target_at: datetime, occupied: list[TimeBlock]) -> bool:
    return not any(block.contains(target_at) for block in occupied)


class RoutineAgendaPlanner:
    """Places the tasks of ACTIVE routines onto a date's agenda."""

    def __init__(self, store: AgendaStore, timezone: str | None = None) -> None:
        self._store = store
        self._tz_name = timezone or settings.timezone

    async def plan_for_date(self, date_key: DateKey | None = None, *, now: datetime | None = None) -> list[AgendaItem]:
        tz = resolve_timezone(self._tz_name)
        key = date_key or today_key(tz, now)
        parse_date_key(key)

        agenda = await self._ensure_agenda(key)
        routines = await self._store.list_active_routines_with_tasks()
        if not routines:
            logger.debug("routine agenda plan skipped date={} reason=no_active_routines", key)
            return []

        existing = await self._store.list_items_by_agenda(agenda.id)
        occupied = collect_occupied(existing)
        planned_ids = {item.routine_task_id for item in existing if item.routine_task_id}

        created: list[AgendaItem] = []
        for routine in routines:
            tasks = list(routine.tasks)
            if not tasks:
                continue
            if routine.type == "SLEEP":
                created.extend(await self._schedule_sleep(agenda, tasks, occupied, key, tz, planned_ids))
            elif routine.type == "STEP":
                created.extend(await self._schedule_steps(agenda, tasks, occupied, key, tz, planned_ids))
            else:
                created.extend(await self._schedule_unanchored(agenda, tasks, planned_ids))

        logger.info(
            "routine agenda plan done date={} routines={} created={}",
            key,
            len(routines),
            len(created),
        )
        return created

    async def _ensure_agenda(self, key: DateKey) -> Agenda:
        agenda = await self._store.get_agenda_by_date(key)
        if agenda is not None:
            return agenda
        return await self._store.create_agenda(key)

    async def _place(
        self,
        agenda: Agenda,
        task: RoutineTask,
        target_at: datetime | None,
        occupied: list[TimeBlock],
    ) -> AgendaItem:
        available = target_at is not None and is_available(target_at, occupied)
        item = await self._store.create_agenda_item(
            agenda.id,
            AgendaItemDraft(
                task_id=None,
                routine_task_id=task.id,
                start_at=target_at if available else None,
                duration=None,
            ),
        )
        if available:
            occupied.append(TimeBlock(start=target_at, end=target_at))
        return item

    async def _schedule_sleep(
        self,
        agenda: Agenda,
        tasks: list[RoutineTask],
        occupied: list[TimeBlock],
        key: DateKey,
        tz: ZoneInfo,
        planned_ids: set[str],
    ) -> list[AgendaItem]:
        created = []
        for task in tasks:
            if task.id in planned_ids:
                continue
            target_at = time_on_date(key, task.target, tz)
            created.append(await self._place(agenda, task, target_at, occupied))
        return created

    async def _schedule_steps(
        self,
        agenda: Agenda,
        tasks: list[RoutineTask],
        occupied: list[TimeBlock],
        key: DateKey,
        tz: ZoneInfo,
        planned_ids: set[str],
    ) -> list[AgendaItem]:
        window_start = time_on_date(key, STEP_WINDOW_START, tz)
        window_end = time_on_date(key, STEP_WINDOW_END, tz)
        if window_start is None or window_end is None:
            return []

        # Spacing is computed over every task, including already planned ones.
        interval = (window_end - window_start) / len(tasks)
        created = []
        for index, task in enumerate(tasks):
            if task.id in planned_ids:
                continue
            target_at = window_start + interval * index
            created.append(await self._place(agenda, task, target_at, occupied))
        return created

    async def _schedule_unanchored(
        self,
        agenda: Agenda,
        tasks: list[RoutineTask],
        planned_ids: set[str],
    ) -> list[AgendaItem]:
        created = []
        for task in tasks:
            if task.id in planned_ids:
                continue
            created.append(
                await self._store.create_agenda_item(
                    agenda.id,
                    AgendaItemDraft(task_id=None, routine_task_id=task.id, start_at=None, duration=None),
                )
            )
        return created
