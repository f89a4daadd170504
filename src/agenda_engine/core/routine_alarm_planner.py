from __future__ import annotations

import math
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from loguru import logger

from agenda_engine.config import settings
from agenda_engine.core.date_keys import (
    MINUTES_PER_DAY,
    as_utc,
    date_key_of,
    resolve_timezone,
    time_on_date,
    utc_now,
    zoned_end_of_day,
    zoned_start_of_day,
)
from agenda_engine.db.models import AlarmPlan, Routine, RoutineTask
from agenda_engine.db.repositories.alarm_plans_repo import AlarmPlanDraft
from agenda_engine.db.store import AgendaStore

STEP_ALARM_COOLDOWN_MINUTES = 30
_OPEN_PLAN_STATUSES = ("PENDING", "ACTIVE")


def _to_number(raw) -> float:
    try:
        value = float(raw or 0)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def sleep_alarm_type(task: RoutineTask) -> str:
    return "SLEEP" if "sleep" in (task.name or "").lower() else "WAKE"


class RoutineAlarmPlanner:
    """Derives SLEEP/WAKE/STEP alarm plans from ACTIVE routines."""

    def __init__(self, store: AgendaStore, timezone: str | None = None) -> None:
        self._store = store
        self._tz_name = timezone or settings.timezone

    async def plan_for_active_routines(self, now: datetime | None = None) -> list[AlarmPlan]:
        tz = resolve_timezone(self._tz_name)
        current = as_utc(now) if now is not None else utc_now()

        routines = await self._store.list_active_routines_with_tasks()
        created: list[AlarmPlan] = []
        for routine in routines:
            if routine.type == "SLEEP":
                created.extend(await self._plan_sleep(routine, current, tz))
            elif routine.type == "STEP":
                plan = await self._plan_steps(routine, current, tz)
                if plan is not None:
                    created.append(plan)

        logger.info("routine alarm plan done routines={} created={}", len(routines), len(created))
        return created

    async def _plan_sleep(self, routine: Routine, now: datetime, tz: ZoneInfo) -> list[AlarmPlan]:
        key = date_key_of(now, tz)
        day_start = zoned_start_of_day(key, tz)
        day_end = zoned_end_of_day(key, tz)

        created = []
        for task in routine.tasks:
            target_at = time_on_date(key, task.target, tz)
            if target_at is None:
                continue
            alarm_type = sleep_alarm_type(task)
            existing = await self._store.find_alarm_plan(
                routine_task_id=task.id,
                type=alarm_type,
                target_from=day_start,
                target_to=day_end,
            )
            if existing is not None:
                continue
            plan = await self._store.create_alarm_plan(
                AlarmPlanDraft(
                    routine_task_id=task.id,
                    type=alarm_type,
                    target_at=target_at,
                    repeat_interval_minutes=routine.repeat_interval_minutes,
                    metadata={"routine_id": routine.id, "routine_type": routine.type},
                    created_at=now,
                )
            )
            logger.info("alarm plan created type={} task={} target_at={}", alarm_type, task.id, target_at.isoformat())
            created.append(plan)
        return created

    async def _plan_steps(self, routine: Routine, now: datetime, tz: ZoneInfo) -> AlarmPlan | None:
        tasks = list(routine.tasks)
        if not tasks:
            return None

        total_target = sum(_to_number(task.target) for task in tasks)
        if total_target <= 0:
            return None

        day_start = zoned_start_of_day(date_key_of(now, tz), tz)
        minutes_elapsed = max(0.0, (now - day_start).total_seconds() / 60)
        expected = math.floor(total_target * minutes_elapsed / MINUTES_PER_DAY)

        logs = await self._store.list_logs_for_tasks([task.id for task in tasks], day_start, now)
        actual = sum(_to_number(log.value) for log in logs)
        if actual >= expected:
            return None

        latest = await self._store.find_alarm_plan(
            routine_task_id=tasks[0].id,
            type="STEP",
            statuses=_OPEN_PLAN_STATUSES,
        )
        if latest is not None:
            if now - as_utc(latest.created_at) < timedelta(minutes=STEP_ALARM_COOLDOWN_MINUTES):
                logger.debug("step alarm suppressed routine={} reason=cooldown", routine.id)
                return None
            # Progress since the previous reminder suppresses a new one.
            if actual > _to_number(latest.meta.get("actual")):
                logger.debug("step alarm suppressed routine={} reason=progress", routine.id)
                return None

        plan = await self._store.create_alarm_plan(
            AlarmPlanDraft(
                routine_task_id=tasks[0].id,
                type="STEP",
                target_at=now,
                repeat_interval_minutes=routine.repeat_interval_minutes,
                metadata={"routine_id": routine.id, "expected": expected, "actual": actual},
                created_at=now,
            )
        )
        logger.info("alarm plan created type=STEP routine={} expected={} actual={}", routine.id, expected, actual)
        return plan
