from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from agenda_engine.config import settings
from agenda_engine.core.expiry import ExpiryResult, ExpiryTransitioner
from agenda_engine.core.routine_agenda_planner import RoutineAgendaPlanner
from agenda_engine.core.routine_alarm_planner import RoutineAlarmPlanner
from agenda_engine.db.models import AgendaItem, AlarmPlan
from agenda_engine.db.store import AgendaStore


class AgendaScheduler:
    """Owns the periodic expiry, agenda planning and alarm planning loops."""

    def __init__(self, store: AgendaStore, timezone: str | None = None) -> None:
        tz_name = timezone or settings.timezone
        self.expiry = ExpiryTransitioner(store)
        self.agenda_planner = RoutineAgendaPlanner(store, tz_name)
        self.alarm_planner = RoutineAlarmPlanner(store, tz_name)

    async def run_expiry_tick(self) -> ExpiryResult:
        return await self.expiry.execute()

    async def run_agenda_plan_tick(self) -> list[AgendaItem]:
        return await self.agenda_planner.plan_for_date()

    async def run_alarm_plan_tick(self) -> list[AlarmPlan]:
        return await self.alarm_planner.plan_for_active_routines()

    async def run_forever(self) -> None:
        logger.info(
            "agenda scheduler started (expiry={}s agenda_plan={}s alarm_plan={}s)",
            settings.expiry_interval_sec,
            settings.agenda_plan_interval_sec,
            settings.alarm_plan_interval_sec,
        )
        await asyncio.gather(
            _loop("expiry", self.run_expiry_tick, settings.expiry_interval_sec),
            _loop("agenda_plan", self.run_agenda_plan_tick, settings.agenda_plan_interval_sec),
            _loop("alarm_plan", self.run_alarm_plan_tick, settings.alarm_plan_interval_sec),
        )


async def run_tick(name: str, tick: Callable[[], Awaitable[object]]) -> bool:
    try:
        await tick()
        return True
    except Exception as exc:
        logger.error("scheduler tick failed loop={} error={}", name, exc)
        return False


async def _loop(name: str, tick: Callable[[], Awaitable[object]], interval_sec: int) -> None:
    interval = max(1, int(interval_sec))
    while True:
        await run_tick(name, tick)
        await asyncio.sleep(interval)
