from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger

from agenda_engine.core.date_keys import as_utc, utc_now
from agenda_engine.db.models import AgendaItem
from agenda_engine.db.store import AgendaStore


@dataclass(slots=True)
class ExpiryResult:
    marked_count: int = 0
    items: list[AgendaItem] = field(default_factory=list)


def is_expired(item: AgendaItem, now: datetime) -> bool:
    if item.status != "PENDING" or item.start_at is None or not item.duration:
        return False
    return as_utc(now) > as_utc(item.start_at) + timedelta(minutes=item.duration)


class ExpiryTransitioner:
    """Moves PENDING items whose time window has passed to UNFINISHED."""

    def __init__(self, store: AgendaStore) -> None:
        self._store = store

    async def execute(self, now: datetime | None = None) -> ExpiryResult:
        current = as_utc(now) if now is not None else utc_now()
        candidates = await self._store.list_expiry_candidates()
        if not candidates:
            logger.debug("expiry sweep: no candidates")
            return ExpiryResult()

        result = ExpiryResult()
        for item in candidates:
            if not is_expired(item, current):
                continue
            try:
                updated = await self._store.update_agenda_item(item.id, status="UNFINISHED")
                await self._store.append_item_log(
                    item.id,
                    "MARKED_UNFINISHED",
                    previous_value={"status": "PENDING"},
                    new_value={"status": "UNFINISHED", "marked_at": current.isoformat()},
                )
            except Exception as exc:
                logger.error("expiry sweep failed item={} error={}", item.id, exc)
                raise
            result.items.append(updated)
            result.marked_count += 1

        logger.info("expiry sweep done candidates={} marked={}", len(candidates), result.marked_count)
        return result
