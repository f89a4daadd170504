from __future__ import annotations

import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Callable, Iterable, Protocol, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from agenda_engine.db.models import Agenda, AgendaItem, AgendaItemLog, AlarmPlan, Routine, RoutineTaskLog
from agenda_engine.db.repositories import agenda_items_repo, agenda_repo, alarm_plans_repo, routines_repo
from agenda_engine.db.repositories.agenda_items_repo import AgendaItemDraft
from agenda_engine.db.repositories.alarm_plans_repo import AlarmPlanDraft
from agenda_engine.db.session import SessionLocal, session_scope

T = TypeVar("T")


class AgendaStore(Protocol):
    async def get_agenda_by_date(self, date_key: str) -> Agenda | None: ...

    async def create_agenda(self, date_key: str) -> Agenda: ...

    async def get_agenda_item(self, item_id: str) -> AgendaItem | None: ...

    async def get_agenda_items(self, date_key: str) -> list[AgendaItem]: ...

    async def list_agenda_items_in_range(self, start_key: str, end_key: str) -> dict[str, list[AgendaItem]]: ...

    async def list_items_by_agenda(self, agenda_id: str) -> list[AgendaItem]: ...

    async def create_agenda_item(self, agenda_id: str, draft: AgendaItemDraft) -> AgendaItem: ...

    async def update_agenda_item(self, item_id: str, **fields: Any) -> AgendaItem: ...

    async def append_item_log(
        self,
        item_id: str,
        log_type: str,
        *,
        previous_value: dict | None = None,
        new_value: dict | None = None,
        notes: str | None = None,
    ) -> AgendaItemLog: ...

    async def list_expiry_candidates(self) -> list[AgendaItem]: ...

    async def list_active_routines_with_tasks(self) -> list[Routine]: ...

    async def create_routine(
        self,
        *,
        name: str,
        type: str,
        target: str,
        separate_into: int = 1,
        status: str = "ACTIVE",
        repeat_interval_minutes: int | None = None,
    ) -> Routine: ...

    async def regenerate_routine_tasks(
        self, routine_id: str, *, target: str | None = None, separate_into: int | None = None
    ) -> Routine: ...

    async def set_routine_status(self, routine_id: str, status: str) -> Routine: ...

    async def add_task_log(
        self, routine_task_id: str, value: float, *, created_at: datetime | None = None
    ) -> RoutineTaskLog: ...

    async def list_logs_for_tasks(
        self, task_ids: Iterable[str], since: datetime, until: datetime | None = None
    ) -> list[RoutineTaskLog]: ...

    async def create_alarm_plan(self, draft: AlarmPlanDraft) -> AlarmPlan: ...

    async def find_alarm_plan(
        self,
        *,
        routine_task_id: str,
        type: str | None = None,
        statuses: Iterable[str] | None = None,
        target_from: datetime | None = None,
        target_to: datetime | None = None,
    ) -> AlarmPlan | None: ...


class SqlAgendaStore:
    """AgendaStore over the SQLAlchemy repositories, one session per call."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with session_scope(self._session_factory) as session:
            return fn(session, *args, **kwargs)

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(partial(self._call, fn, *args, **kwargs))

    async def get_agenda_by_date(self, date_key: str) -> Agenda | None:
        return await self._run(agenda_repo.get_agenda_by_date, date_key)

    async def create_agenda(self, date_key: str) -> Agenda:
        return await self._run(agenda_repo.create_agenda, date_key)

    async def get_agenda_item(self, item_id: str) -> AgendaItem | None:
        return await self._run(agenda_items_repo.get_agenda_item, item_id)

    async def get_agenda_items(self, date_key: str) -> list[AgendaItem]:
        return await self._run(agenda_items_repo.list_items_for_date, date_key)

    async def list_agenda_items_in_range(self, start_key: str, end_key: str) -> dict[str, list[AgendaItem]]:
        return await self._run(agenda_items_repo.list_items_in_range, start_key, end_key)

    async def list_items_by_agenda(self, agenda_id: str) -> list[AgendaItem]:
        return await self._run(agenda_items_repo.list_items_by_agenda, agenda_id)

    async def create_agenda_item(self, agenda_id: str, draft: AgendaItemDraft) -> AgendaItem:
        return await self._run(agenda_items_repo.create_agenda_item, agenda_id, draft)

    async def update_agenda_item(self, item_id: str, **fields: Any) -> AgendaItem:
        return await self._run(agenda_items_repo.update_agenda_item, item_id, **fields)

    async def append_item_log(
        self,
        item_id: str,
        log_type: str,
        *,
        previous_value: dict | None = None,
        new_value: dict | None = None,
        notes: str | None = None,
    ) -> AgendaItemLog:
        return await self._run(
            agenda_items_repo.append_item_log,
            item_id,
            log_type,
            previous_value=previous_value,
            new_value=new_value,
            notes=notes,
        )

    async def list_expiry_candidates(self) -> list[AgendaItem]:
        return await self._run(agenda_items_repo.list_expiry_candidates)

    async def list_active_routines_with_tasks(self) -> list[Routine]:
        return await self._run(routines_repo.list_active_routines_with_tasks)

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
        return await self._run(
            routines_repo.create_routine,
            name=name,
            type=type,
            target=target,
            separate_into=separate_into,
            status=status,
            repeat_interval_minutes=repeat_interval_minutes,
        )

    async def regenerate_routine_tasks(
        self, routine_id: str, *, target: str | None = None, separate_into: int | None = None
    ) -> Routine:
        return await self._run(
            routines_repo.regenerate_routine_tasks, routine_id, target=target, separate_into=separate_into
        )

    async def set_routine_status(self, routine_id: str, status: str) -> Routine:
        return await self._run(routines_repo.set_routine_status, routine_id, status)

    async def add_task_log(
        self, routine_task_id: str, value: float, *, created_at: datetime | None = None
    ) -> RoutineTaskLog:
        return await self._run(routines_repo.add_task_log, routine_task_id, value, created_at=created_at)

    async def list_logs_for_tasks(
        self, task_ids: Iterable[str], since: datetime, until: datetime | None = None
    ) -> list[RoutineTaskLog]:
        return await self._run(routines_repo.list_logs_for_tasks, list(task_ids), since, until)

    async def create_alarm_plan(self, draft: AlarmPlanDraft) -> AlarmPlan:
        return await self._run(alarm_plans_repo.create_alarm_plan, draft)

    async def find_alarm_plan(
        self,
        *,
        routine_task_id: str,
        type: str | None = None,
        statuses: Iterable[str] | None = None,
        target_from: datetime | None = None,
        target_to: datetime | None = None,
    ) -> AlarmPlan | None:
        return await self._run(
            alarm_plans_repo.find_alarm_plan,
            routine_task_id=routine_task_id,
            type=type,
            statuses=list(statuses) if statuses is not None else None,
            target_from=target_from,
            target_to=target_to,
        )
