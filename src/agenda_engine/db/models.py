from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

AGENDA_ITEM_STATUSES = ("PENDING", "COMPLETED", "UNFINISHED")
ROUTINE_TYPES = ("SLEEP", "STEP", "OTHER")
ROUTINE_STATUSES = ("ACTIVE", "PAUSED", "ARCHIVED")
ALARM_PLAN_TYPES = ("SLEEP", "WAKE", "STEP")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores UTC; SQLite hands back naive values, so tz is re-attached on load."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _load_json(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


class Base(DeclarativeBase):
    pass


class Agenda(Base):
    __tablename__ = "agendas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    date: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    items: Mapped[list["AgendaItem"]] = relationship(
        "AgendaItem", back_populates="agenda", order_by="AgendaItem.position"
    )


class Routine(Base):
    __tablename__ = "routines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE", index=True)
    target: Mapped[str] = mapped_column(String(64), nullable=False)
    separate_into: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    repeat_interval_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    tasks: Mapped[list["RoutineTask"]] = relationship(
        "RoutineTask",
        back_populates="routine",
        order_by="RoutineTask.position",
        cascade="all, delete-orphan",
    )


class RoutineTask(Base):
    __tablename__ = "routine_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    routine_id: Mapped[str] = mapped_column(ForeignKey("routines.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)

    routine: Mapped[Routine] = relationship("Routine", back_populates="tasks")


class RoutineTaskLog(Base):
    __tablename__ = "routine_task_logs"
    __table_args__ = (Index("ix_routine_task_logs_task_created", "routine_task_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    routine_task_id: Mapped[str] = mapped_column(ForeignKey("routine_tasks.id", ondelete="CASCADE"), nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)


class AgendaItem(Base):
    __tablename__ = "agenda_items"
    __table_args__ = (Index("ix_agenda_items_status_start", "status", "start_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    agenda_id: Mapped[str] = mapped_column(ForeignKey("agendas.id"), nullable=False, index=True)
    task_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    routine_task_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("routine_tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="TASK")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    start_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notification_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    agenda: Mapped[Agenda] = relationship("Agenda", back_populates="items")
    routine_task: Mapped[Optional[RoutineTask]] = relationship("RoutineTask")
    logs: Mapped[list["AgendaItemLog"]] = relationship(
        "AgendaItemLog", back_populates="agenda_item", order_by="AgendaItemLog.created_at"
    )

class AgendaItemLog(Base):
    __tablename__ = "agenda_item_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    agenda_item_id: Mapped[str] = mapped_column(ForeignKey("agenda_items.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    previous_value_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False)

    agenda_item: Mapped[AgendaItem] = relationship("AgendaItem", back_populates="logs")

    @property
    def previous_value(self) -> dict[str, Any]:
        return _load_json(self.previous_value_json)

    @property
    def new_value(self) -> dict[str, Any]:
        return _load_json(self.new_value_json)


class AlarmPlan(Base):
    __tablename__ = "alarm_plans"
    __table_args__ = (Index("ix_alarm_plans_task_type", "routine_task_id", "type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    routine_task_id: Mapped[str] = mapped_column(ForeignKey("routine_tasks.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    target_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    repeat_interval_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    @property
    def meta(self) -> dict[str, Any]:
        return _load_json(self.meta_json)
