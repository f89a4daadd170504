from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agenda_engine.errors import ConfigurationError, ValidationError

DateKey = str

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

WEEKDAY_SHORT = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAY_LONG = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTH_LONG = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

MONTH_GRID_SIZE = 42
MINUTES_PER_DAY = 1440


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Look up an IANA zone; never falls back to the host timezone."""
    tz_name = (name or "").strip()
    if not tz_name:
        raise ConfigurationError("Timezone is required")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unsupported timezone: {tz_name}") from exc


def is_valid_date_key(value: str) -> bool:
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_key(value: str) -> date:
    if not isinstance(value, str) or not _DATE_KEY_RE.match(value):
        raise ValidationError(f"Invalid date key: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date key: {value!r}") from exc


def date_key_of(instant: datetime, tz: ZoneInfo) -> DateKey:
    return as_utc(instant).astimezone(tz).date().isoformat()


def today_key(tz: ZoneInfo, now: datetime | None = None) -> DateKey:
    return date_key_of(now or utc_now(), tz)


def start_of_day_utc(key: DateKey) -> datetime:
    return datetime.combine(parse_date_key(key), time.min, tzinfo=timezone.utc)


def end_of_day_utc(key: DateKey) -> datetime:
    return datetime.combine(parse_date_key(key), time(23, 59, 59, 999000), tzinfo=timezone.utc)


def zoned_start_of_day(key: DateKey, tz: ZoneInfo) -> datetime:
    # fold=0 on a wall time inside a DST gap uses the pre-transition offset,
    # which lands on the first instant that exists on that local day.
    local = datetime.combine(parse_date_key(key), time.min, tzinfo=tz)
    return local.astimezone(timezone.utc)


def zoned_end_of_day(key: DateKey, tz: ZoneInfo) -> datetime:
    return zoned_start_of_day(add_days(key, 1), tz) - timedelta(milliseconds=1)


def add_days(key: DateKey, days: int) -> DateKey:
    return (parse_date_key(key) + timedelta(days=days)).isoformat()


def add_months(key: DateKey, months: int) -> DateKey:
    day = parse_date_key(key)
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day)).isoformat()


def weekday_index(key: DateKey) -> int:
    """Mon=0..Sun=6. A calendar date has the same weekday in every zone."""
    return parse_date_key(key).weekday()


def week_range(key: DateKey, tz: ZoneInfo) -> tuple[DateKey, DateKey]:
    start = add_days(key, -weekday_index(key))
    return start, add_days(start, 6)


def week_days(key: DateKey, tz: ZoneInfo) -> list[DateKey]:
    start, _ = week_range(key, tz)
    return [add_days(start, offset) for offset in range(7)]


def month_range(key: DateKey) -> tuple[DateKey, DateKey]:
    day = parse_date_key(key)
    last_day = calendar.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1).isoformat(), date(day.year, day.month, last_day).isoformat()


def month_grid_days(key: DateKey, tz: ZoneInfo) -> list[DateKey]:
    first, _ = month_range(key)
    grid_start = add_days(first, -weekday_index(first))
    return [add_days(grid_start, offset) for offset in range(MONTH_GRID_SIZE)]


def local_time_parts(instant: datetime, tz: ZoneInfo) -> tuple[int, int]:
    local = as_utc(instant).astimezone(tz)
    return local.hour, local.minute


def local_start_minute(instant: datetime, tz: ZoneInfo) -> int:
    hour, minute = local_time_parts(instant, tz)
    return hour * 60 + minute


def parse_hhmm(value: str | None) -> tuple[int, int] | None:
    match = _HHMM_RE.match((value or "").strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours, minutes


def time_on_date(key: DateKey, hhmm: str | None, tz: ZoneInfo) -> datetime | None:
    parts = parse_hhmm(hhmm)
    if parts is None:
        return None
    local = datetime.combine(parse_date_key(key), time(parts[0], parts[1]), tzinfo=tz)
    return local.astimezone(timezone.utc)


def format_hour_label(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour == 12:
        return "12 PM"
    if hour < 12:
        return f"{hour} AM"
    return f"{hour - 12} PM"


def format_day_label(key: DateKey) -> str:
    day = parse_date_key(key)
    return f"{WEEKDAY_LONG[day.weekday()]}, {MONTH_LONG[day.month - 1]} {day.day}, {day.year}"


def format_month_label(key: DateKey) -> str:
    day = parse_date_key(key)
    return f"{MONTH_LONG[day.month - 1]} {day.year}"


def format_week_label(start_key: DateKey, end_key: DateKey) -> str:
    start = parse_date_key(start_key)
    end = parse_date_key(end_key)
    start_month = MONTH_SHORT[start.month - 1]
    end_month = MONTH_SHORT[end.month - 1]
    if start.year == end.year:
        if start.month == end.month:
            return f"{start_month} {start.day} - {end.day}, {end.year}"
        return f"{start_month} {start.day} - {end_month} {end.day}, {end.year}"
    return f"{start_month} {start.day}, {start.year} - {end_month} {end.day}, {end.year}"


def format_week_day_label(key: DateKey) -> str:
    day = parse_date_key(key)
    return f"{WEEKDAY_SHORT[day.weekday()]} {day.day}"


def format_week_day_short_label(key: DateKey) -> str:
    return WEEKDAY_SHORT[parse_date_key(key).weekday()]


def format_day_number_label(key: DateKey) -> str:
    return str(parse_date_key(key).day)


def weekday_labels() -> list[str]:
    return list(WEEKDAY_SHORT)
