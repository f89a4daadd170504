from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from loguru import logger

from agenda_engine.core.date_keys import (
    DateKey,
    add_days,
    add_months,
    format_day_label,
    format_day_number_label,
    format_hour_label,
    format_month_label,
    format_week_day_short_label,
    format_week_label,
    local_start_minute,
    local_time_parts,
    month_grid_days,
    month_range,
    parse_date_key,
    resolve_timezone,
    today_key,
    week_days,
    week_range,
    weekday_labels,
)
from agenda_engine.core.overlap_layout import TimedItemLayout, TimedItemLayoutInput, assign_overlap_layout
from agenda_engine.errors import ValidationError

DEFAULT_EVENT_DURATION_MINUTES = 30
MAX_MONTH_ITEMS = 3


class AgendaItemReader(Protocol):
    async def get_agenda_items(self, date_key: DateKey) -> list[Any]: ...

    async def list_agenda_items_in_range(self, start_key: DateKey, end_key: DateKey) -> dict[DateKey, list[Any]]: ...


@dataclass(frozen=True, slots=True)
class Navigation:
    anchor_date: DateKey
    previous_anchor_date: DateKey
    next_anchor_date: DateKey
    today_anchor_date: DateKey


@dataclass(frozen=True, slots=True)
class HourLabel:
    hour: int
    label: str


@dataclass(slots=True)
class HourSlot:
    hour: int
    label: str
    items: list[Any] = field(default_factory=list)


@dataclass(slots=True)
class SpecialItems:
    wakeup: Any = None
    sleep: Any = None
    step: Any = None


@dataclass(slots=True)
class DayView:
    timezone: str
    anchor_date: DateKey
    label: str
    date_key: DateKey
    is_today: bool
    wake_up_hour: int | None
    sleep_hour: int | None
    navigation: Navigation
    hours: list[HourSlot]
    all_day_items: list[Any]
    special_items: SpecialItems
    unfinished_items: list[Any]
    is_empty: bool
    mode: str = "day"


@dataclass(slots=True)
class WeekDay:
    date_key: DateKey
    label: str
    short_label: str
    is_today: bool
    all_day_items: list[Any]
    timed_items: list[TimedItemLayout]


@dataclass(slots=True)
class WeekView:
    timezone: str
    anchor_date: DateKey
    label: str
    range_start: DateKey
    range_end: DateKey
    navigation: Navigation
    hours: list[HourLabel]
    days: list[WeekDay]
    unfinished_items: list[Any]
    mode: str = "week"


@dataclass(slots=True)
class MonthDay:
    date_key: DateKey
    label: str
    is_today: bool
    is_current_month: bool
    items: list[Any]
    overflow_count: int


@dataclass(slots=True)
class MonthView:
    timezone: str
    anchor_date: DateKey
    label: str
    month_start: DateKey
    month_end: DateKey
    navigation: Navigation
    weekday_labels: list[str]
    days: list[MonthDay]
    unfinished_items: list[Any]
    mode: str = "month"


@dataclass(slots=True)
class ClassifiedItems:
    tasks: list[Any]
    routines: list[Any]
    steps: list[Any]
    sleep_items: list[Any]


def _routine_type(item: Any) -> str | None:
    routine_task = getattr(item, "routine_task", None)
    if routine_task is None:
        return None
    routine = getattr(routine_task, "routine", None)
    return getattr(routine, "type", None)


def classify_items(items: list[Any]) -> ClassifiedItems:
    routine_items = [item for item in items if getattr(item, "routine_task", None) is not None]
    task_items = [item for item in items if item.task_id and getattr(item, "routine_task", None) is None]
    return ClassifiedItems(
        tasks=task_items,
        routines=[item for item in routine_items if _routine_type(item) not in ("SLEEP", "STEP")],
        steps=[item for item in routine_items if _routine_type(item) == "STEP"],
        sleep_items=sorted(
            (item for item in routine_items if _routine_type(item) == "SLEEP"),
            key=lambda item: item.position,
        ),
    )


def scheduled_items(classified: ClassifiedItems) -> list[Any]:
    return [item for item in classified.tasks + classified.routines if item.status != "UNFINISHED"]


def unfinished_items(items: list[Any]) -> list[Any]:
    return [item for item in items if item.status == "UNFINISHED"]


def item_priority(item: Any) -> int:
    if item.type == "MEETING":
        return 1
    if item.type == "MILESTONE":
        return 2
    if item.task_id:
        return 3
    if item.routine_task_id:
        return 4
    return 5


def start_minute(item: Any, tz: ZoneInfo) -> int:
    if item.start_at is None:
        return 0
    return local_start_minute(item.start_at, tz)


def duration_minutes(item: Any) -> int:
    if item.duration and item.duration > 0:
        return item.duration
    return DEFAULT_EVENT_DURATION_MINUTES


def build_hours() -> list[HourLabel]:
    return [HourLabel(hour=hour, label=format_hour_label(hour)) for hour in range(24)]


def build_hour_slots(timed_items: list[Any], tz: ZoneInfo) -> list[HourSlot]:
    slots = [HourSlot(hour=h.hour, label=h.label) for h in build_hours()]
    ordered = sorted(timed_items, key=lambda item: (start_minute(item, tz), item_priority(item)))
    for item in ordered:
        hour, _ = local_time_parts(item.start_at, tz)
        slots[hour].items.append(item)
    return slots


def build_timed_layout(timed_items: list[Any], tz: ZoneInfo) -> list[TimedItemLayout]:
    return assign_overlap_layout(
        [
            TimedItemLayoutInput(
                item=item,
                start_minute=start_minute(item, tz),
                duration_minutes=duration_minutes(item),
            )
            for item in timed_items
        ]
    )


def sort_items_for_month(items: list[Any], tz: ZoneInfo) -> list[Any]:
    return sorted(
        items,
        key=lambda item: (item.start_at is not None, start_minute(item, tz), item_priority(item)),
    )


class AgendaViewAssembler:
    """Builds day, week and month view models from stored agenda items."""

    def __init__(self, reader: AgendaItemReader) -> None:
        self._reader = reader

    async def get_view(
        self,
        mode: str,
        anchor_date: DateKey,
        timezone: str,
        *,
        now: datetime | None = None,
    ) -> DayView | WeekView | MonthView:
        if mode == "day":
            return await self.get_day_view(anchor_date, timezone, now=now)
        if mode == "week":
            return await self.get_week_view(anchor_date, timezone, now=now)
        if mode == "month":
            return await self.get_month_view(anchor_date, timezone, now=now)
        raise ValidationError(f"Unsupported view mode: {mode!r}")

    async def get_day_view(self, anchor_date: DateKey, timezone: str, *, now: datetime | None = None) -> DayView:
        tz = resolve_timezone(timezone)
        parse_date_key(anchor_date)
        today = today_key(tz, now)

        items = await self._reader.get_agenda_items(anchor_date)
        classified = classify_items(items)
        scheduled = scheduled_items(classified)
        all_day = [item for item in scheduled if item.start_at is None]
        timed = [item for item in scheduled if item.start_at is not None]

        sleep = classified.sleep_items[0] if classified.sleep_items else None
        wakeup = classified.sleep_items[1] if len(classified.sleep_items) > 1 else None
        step = classified.steps[0] if classified.steps else None
        unfinished = unfinished_items(items)

        has_content = bool(
            classified.tasks or classified.routines or classified.steps or wakeup or sleep or unfinished
        )
        logger.debug("day view date={} tz={} items={}", anchor_date, timezone, len(items))
        return DayView(
            timezone=timezone,
            anchor_date=anchor_date,
            label=format_day_label(anchor_date),
            date_key=anchor_date,
            is_today=anchor_date == today,
            wake_up_hour=local_time_parts(wakeup.start_at, tz)[0] if wakeup and wakeup.start_at else None,
            sleep_hour=local_time_parts(sleep.start_at, tz)[0] if sleep and sleep.start_at else None,
            navigation=Navigation(
                anchor_date=anchor_date,
                previous_anchor_date=add_days(anchor_date, -1),
                next_anchor_date=add_days(anchor_date, 1),
                today_anchor_date=today,
            ),
            hours=build_hour_slots(timed, tz),
            all_day_items=all_day,
            special_items=SpecialItems(wakeup=wakeup, sleep=sleep, step=step),
            unfinished_items=unfinished,
            is_empty=not has_content,
        )

    async def get_week_view(self, anchor_date: DateKey, timezone: str, *, now: datetime | None = None) -> WeekView:
        tz = resolve_timezone(timezone)
        parse_date_key(anchor_date)
        today = today_key(tz, now)
        range_start, range_end = week_range(anchor_date, tz)

        by_date = await self._reader.list_agenda_items_in_range(range_start, range_end)
        days = []
        for key in week_days(anchor_date, tz):
            scheduled = scheduled_items(classify_items(by_date.get(key, [])))
            days.append(
                WeekDay(
                    date_key=key,
                    label=format_day_number_label(key),
                    short_label=format_week_day_short_label(key),
                    is_today=key == today,
                    all_day_items=[item for item in scheduled if item.start_at is None],
                    timed_items=build_timed_layout([item for item in scheduled if item.start_at is not None], tz),
                )
            )

        anchor_items = await self._reader.get_agenda_items(anchor_date)
        logger.debug("week view range={}..{} tz={}", range_start, range_end, timezone)
        return WeekView(
            timezone=timezone,
            anchor_date=anchor_date,
            label=format_week_label(range_start, range_end),
            range_start=range_start,
            range_end=range_end,
            navigation=Navigation(
                anchor_date=range_start,
                previous_anchor_date=add_days(range_start, -7),
                next_anchor_date=add_days(range_start, 7),
                today_anchor_date=today,
            ),
            hours=build_hours(),
            days=days,
            unfinished_items=unfinished_items(anchor_items),
        )

    async def get_month_view(self, anchor_date: DateKey, timezone: str, *, now: datetime | None = None) -> MonthView:
        tz = resolve_timezone(timezone)
        parse_date_key(anchor_date)
        today = today_key(tz, now)
        month_start, month_end = month_range(anchor_date)
        grid = month_grid_days(anchor_date, tz)

        by_date = await self._reader.list_agenda_items_in_range(grid[0], grid[-1])
        days = []
        for key in grid:
            ordered = sort_items_for_month(scheduled_items(classify_items(by_date.get(key, []))), tz)
            visible = ordered[:MAX_MONTH_ITEMS]
            days.append(
                MonthDay(
                    date_key=key,
                    label=format_day_number_label(key),
                    is_today=key == today,
                    is_current_month=key[:7] == month_start[:7],
                    items=visible,
                    overflow_count=len(ordered) - len(visible),
                )
            )

        anchor_items = await self._reader.get_agenda_items(anchor_date)
        logger.debug("month view month={} tz={}", month_start[:7], timezone)
        return MonthView(
            timezone=timezone,
            anchor_date=anchor_date,
            label=format_month_label(month_start),
            month_start=month_start,
            month_end=month_end,
            navigation=Navigation(
                anchor_date=month_start,
                previous_anchor_date=add_months(month_start, -1),
                next_anchor_date=add_months(month_start, 1),
                today_anchor_date=today,
            ),
            weekday_labels=weekday_labels(),
            days=days,
            unfinished_items=unfinished_items(anchor_items),
        )
