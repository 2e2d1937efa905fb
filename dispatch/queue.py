"""
dispatch/queue.py
Idempotent enqueue of deliveries into notification_logs.

One bulk INSERT ... ON CONFLICT (dedupe_key) DO NOTHING. Only rows that were
actually inserted come back, and only those get sent. A second trigger in the
same minute therefore queues nothing it has already queued, whether it runs
after the first one or concurrently with it.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.clock import TimeWindow
from dispatch.recipients import Delivery
from shared.models.models import DeliveryStatus, NotificationLog

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class QueuedRow:
    id: uuid.UUID
    dedupe_key: str


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise NotImplementedError(f"Insert-if-absent is not supported on {dialect}")


def _row_for(delivery: Delivery, window: TimeWindow) -> dict:
    return {
        "id": uuid.uuid4(),
        "user_id": delivery.user_id,
        "source_type": delivery.source,
        "category": delivery.category,
        "title": delivery.title,
        "body": delivery.body,
        "status": DeliveryStatus.QUEUED,
        "scheduled_time": window.time,
        "dedupe_key": delivery.dedupe_key,
        "payload": delivery.payload,
    }


async def enqueue(
    db: AsyncSession,
    deliveries: Sequence[Delivery],
    window: TimeWindow,
) -> List[QueuedRow]:
    """
    Insert a queued log row per delivery, skipping dedupe keys that already exist.
    Commits before returning so concurrent triggers see the claimed keys.
    Returns the newly inserted rows in candidate order.
    """
    if not deliveries:
        return []

    insert = _insert_for(db)
    stmt = (
        insert(NotificationLog)
        .values([_row_for(d, window) for d in deliveries])
        .on_conflict_do_nothing(index_elements=["dedupe_key"])
        .returning(NotificationLog.id, NotificationLog.dedupe_key)
    )
    result = await db.execute(stmt)
    inserted = {key: row_id for row_id, key in result.all()}
    await db.commit()

    skipped = len(deliveries) - len(inserted)
    if skipped:
        logger.info("Skipped %d deliveries already queued for %s %s", skipped, window.date, window.time)

    # RETURNING order is not guaranteed; send in candidate order
    return [
        QueuedRow(id=inserted[d.dedupe_key], dedupe_key=d.dedupe_key)
        for d in deliveries
        if d.dedupe_key in inserted
    ]
