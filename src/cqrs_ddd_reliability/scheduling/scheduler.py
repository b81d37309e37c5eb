"""MessageScheduler — API for deferring commands to a time or a cron schedule."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..clock import SystemClock, ensure_utc
from ..ports.scheduling import ScheduledRecord
from .cron import next_occurrence, validate_cron

if TYPE_CHECKING:
    from datetime import datetime

    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.scheduling import IScheduledStore
    from ..ports.unit_of_work import UnitOfWork

logger = logging.getLogger("cqrs_ddd.scheduling")


class MessageScheduler:
    """
    Write side of scheduling.

    Records are appended through the store, joining the caller's
    transaction when a ``uow`` is passed. The ``SchedulerProcessor``
    dispatches them once due.
    """

    def __init__(
        self,
        store: IScheduledStore,
        codec: IPayloadCodec,
        *,
        clock: IClock | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.clock = clock or SystemClock()

    async def schedule(
        self,
        request: Any,
        execute_at: datetime,
        *,
        uow: UnitOfWork | None = None,
    ) -> ScheduledRecord:
        """Dispatch *request* once, at or after *execute_at*.

        Raises:
            TypeResolutionError: If the request class is not registered.
        """
        record = ScheduledRecord(
            request_type=self.codec.registered_name_of(request),
            payload=self.codec.serialize(request),
            scheduled_at=ensure_utc(execute_at),
            created_at=self.clock.now(),
        )
        await self.store.add(record, uow=uow)
        logger.info(
            "Scheduled %s (ID: %s) for %s",
            record.request_type,
            record.id,
            record.scheduled_at.isoformat(),
        )
        return record

    async def schedule_recurring(
        self,
        request: Any,
        cron_expression: str,
        *,
        start_at: datetime | None = None,
        uow: UnitOfWork | None = None,
    ) -> ScheduledRecord:
        """Dispatch *request* on every occurrence of *cron_expression*.

        The first run is the first occurrence after *start_at* (default: now).

        Raises:
            InvalidCronExpressionError: If the expression cannot be parsed.
            TypeResolutionError: If the request class is not registered.
        """
        cron_expression = validate_cron(cron_expression)
        now = self.clock.now()
        record = ScheduledRecord(
            request_type=self.codec.registered_name_of(request),
            payload=self.codec.serialize(request),
            scheduled_at=next_occurrence(cron_expression, start_at or now),
            created_at=now,
            is_recurring=True,
            cron_expression=cron_expression,
        )
        await self.store.add(record, uow=uow)
        logger.info(
            "Scheduled recurring %s (ID: %s, cron=%r), first run %s",
            record.request_type,
            record.id,
            cron_expression,
            record.scheduled_at.isoformat(),
        )
        return record

    async def cancel(self, schedule_id: str, *, uow: UnitOfWork | None = None) -> bool:
        """Remove a scheduled record. Returns ``False`` if it did not exist."""
        cancelled = await self.store.cancel(schedule_id, uow=uow)
        if cancelled:
            logger.info("Cancelled scheduled record %s", schedule_id)
        return cancelled
