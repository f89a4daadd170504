from __future__ import annotations

import math
from dataclasses import dataclass

from agenda_engine.core.date_keys import parse_hhmm
from agenda_engine.errors import ValidationError


@dataclass(frozen=True, slots=True)
class RoutineTaskDraft:
    name: str
    target: str
    position: int


def _build_step_tasks(target: str, separate_into: int) -> list[RoutineTaskDraft]:
    try:
        total = float(target)
    except (TypeError, ValueError):
        raise ValidationError("Invalid step target") from None
    if not math.isfinite(total) or total <= 0:
        raise ValidationError("Invalid step target")

    # remainder may be fractional; segments with index below it get one more step
    base = math.floor(total / separate_into)
    remainder = total - base * separate_into
    return [
        RoutineTaskDraft(
            name=f"Steps segment {idx + 1}",
            target=str(base + (1 if idx < remainder else 0)),
            position=idx,
        )
        for idx in range(separate_into)
    ]


def validate_separate_into(separate_into: int) -> None:
    if separate_into < 1:
        raise ValidationError("separateInto must be at least 1")


def _build_sleep_tasks(target: str) -> list[RoutineTaskDraft]:
    parts = [p.strip() for p in (target or "").split("-")]
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValidationError("Sleep target must be in HH:MM-HH:MM format")
    wake_time, sleep_time = parts
    if parse_hhmm(wake_time) is None or parse_hhmm(sleep_time) is None:
        raise ValidationError("Sleep target must be in HH:MM-HH:MM format")
    return [
        RoutineTaskDraft(name="Wake up time", target=wake_time, position=0),
        RoutineTaskDraft(name="Sleep time", target=sleep_time, position=1),
    ]


def build_routine_tasks(
    routine_type: str,
    name: str,
    target: str,
    separate_into: int = 1,
) -> list[RoutineTaskDraft]:
    """
    Expand a routine definition into its tasks.
    - STEP: numeric total split into `separate_into` segments
    - SLEEP: "HH:MM-HH:MM" (wake-sleep) into two timed tasks
    - anything else: one task carrying the routine's own target
    """
    validate_separate_into(separate_into)
    if routine_type == "STEP":
        return _build_step_tasks(target, separate_into)
    if routine_type == "SLEEP":
        return _build_sleep_tasks(target)
    return [RoutineTaskDraft(name=name, target=target, position=0)]
