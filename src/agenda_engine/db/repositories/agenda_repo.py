from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from agenda_engine.core.date_keys import parse_date_key
from agenda_engine.db.models import Agenda


def get_agenda_by_date(session: Session, date_key: str) -> Agenda | None:
    parse_date_key(date_key)
    return session.scalar(select(Agenda).where(Agenda.date == date_key))


def create_agenda(session: Session, date_key: str) -> Agenda:
    parse_date_key(date_key)
    agenda = Agenda(date=date_key)
    session.add(agenda)
    session.flush()
    return agenda

