import asyncio
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from loguru import logger

from agenda_engine.errors import ConfigurationError
from agenda_engine.logging_setup import setup_logging

MIGRATIONS_DIR = Path(__file__).resolve().parent / "db" / "migrations"


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if env_path:
        logger.info("Loaded .env from {}", env_path)
        load_dotenv(env_path, override=True)
    else:
        logger.warning("No .env found")


def _run_migrations(database_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")


async def _run(timezone: str) -> None:
    from agenda_engine.db.store import SqlAgendaStore
    from agenda_engine.events import EventBus, EventPublishingStore
    from agenda_engine.scheduler import AgendaScheduler

    bus = EventBus()
    bus.subscribe("*", lambda event: logger.info("event {} id={}", event.name, event.entity_id))
    store = EventPublishingStore(SqlAgendaStore(), bus)
    await AgendaScheduler(store, timezone).run_forever()


def main() -> None:
    _load_env()
    setup_logging()

    from agenda_engine.config import settings
    from agenda_engine.core.date_keys import resolve_timezone
    from agenda_engine.db.session import build_database_url

    try:
        resolve_timezone(settings.timezone)
    except ConfigurationError as exc:
        logger.error("FATAL: {}", exc)
        sys.exit(1)

    Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    if settings.run_migrations_on_start:
        _run_migrations(build_database_url())
    if not settings.scheduler_enabled:
        logger.info("scheduler disabled, exiting")
        return

    try:
        asyncio.run(_run(settings.timezone))
    except KeyboardInterrupt:
        return


if __name__ == "__main__":
    main()
