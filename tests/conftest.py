from pathlib import Path

import pytest

from agenda_engine.db.models import Base
from agenda_engine.db.session import build_engine, build_session_factory
from agenda_engine.db.store import SqlAgendaStore


@pytest.fixture()
def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite+pysqlite:///{(tmp_path / 'agenda.db').as_posix()}")
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def store(session_factory) -> SqlAgendaStore:
    return SqlAgendaStore(session_factory)
