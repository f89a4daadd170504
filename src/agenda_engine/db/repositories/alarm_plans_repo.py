from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from agenda_engine.db.models import ALARM_PLAN_TYPES, AlarmPlan
from agenda_engine.errors import ValidationError


@dataclass(slots=True)
class AlarmPlanDraft:
    routine_task_id: str
    type: str
    target_at: datetime
    repeat_interval_minutes: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


def create_alarm_plan(session: Session, draft: AlarmPlanDraft) -> AlarmPlan:
    if draft.type not in ALARM_PLAN_TYPES:
        raise ValidationError(f"Invalid alarm plan type: {draft.type}")
    now = datetime.now(timezone.utc)
    plan = AlarmPlan(
        routine_task_id=draft.routine_task_id,
        type=draft.type,
        target_at=draft.target_at,
        status="PENDING",
        repeat_interval_minutes=draft.repeat_interval_minutes,
        meta_json=json.dumps(draft.metadata, ensure_ascii=False, default=str) if draft.metadata else None,
        created_at=draft.created_at or now,
        updated_at=draft.created_at or now,
    )
    session.add(plan)
    session.flush()
    return plan


def find_alarm_plan(
    session: Session,
    *,
    routine_task_id: str,
    type: str | None = None,
    statuses: Iterable[str] | None = None,
    target_from: datetime | None = None,
    target_to: datetime | None = None,
) -> AlarmPlan | None:
    """Most recently created plan matching every given filter."""
    stmt = select(AlarmPlan).where(AlarmPlan.routine_task_id == routine_task_id)
    if type is not None:
        stmt = stmt.where(AlarmPlan.type == type)
    if statuses is not None:
        stmt = stmt.where(AlarmPlan.status.in_(list(statuses)))
    if target_from is not None:
        stmt = stmt.where(AlarmPlan.target_at >= target_from)
    if target_to is not None:
        stmt = stmt.where(AlarmPlan.target_at <= target_to)
    return session.scalar(stmt.order_by(AlarmPlan.created_at.desc()).limit(1))
