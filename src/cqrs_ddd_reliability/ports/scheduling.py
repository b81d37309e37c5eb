"""IScheduledStore — deferred and recurring command storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import uuid4

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@dataclass
class ScheduledRecord:
    """
    A command to dispatch at ``scheduled_at``.

    One-shot records settle after success. Recurring records never settle:
    each success moves ``scheduled_at`` to the next cron occurrence.
    """

    request_type: str
    payload: str
    scheduled_at: datetime
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    last_executed_at: datetime | None = None
    last_error: str | None = None
    retry_count: int = 0
    next_retry_at: datetime | None = None
    is_recurring: bool = False
    cron_expression: str | None = None

    def __post_init__(self) -> None:
        if self.is_recurring and not self.cron_expression:
            raise ValueError("Recurring scheduled records require a cron_expression")


@runtime_checkable
class IScheduledStore(Protocol):
    """Persistence port for :class:`ScheduledRecord`."""

    async def add(
        self, record: ScheduledRecord, uow: UnitOfWork | None = None
    ) -> None:
        """
        Raises:
            DuplicateKeyError: If ``id`` already exists.
        """
        ...

    async def get(
        self, record_id: str, uow: UnitOfWork | None = None
    ) -> ScheduledRecord | None: ...

    async def get_due(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[ScheduledRecord]:
        """Due, non-dead-lettered records, earliest ``scheduled_at`` first."""
        ...

    async def mark_succeeded(
        self,
        record_id: str,
        executed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Settle a one-shot record. Unknown ids are ignored."""
        ...

    async def mark_failed(
        self,
        record_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Record a failed attempt. Unknown ids are ignored."""
        ...

    async def reschedule_recurring(
        self,
        record_id: str,
        next_scheduled_at: datetime,
        executed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        """
        Reset retry state after a successful recurring run and move
        ``scheduled_at`` forward. Unknown ids are ignored.
        """
        ...

    async def cancel(self, record_id: str, uow: UnitOfWork | None = None) -> bool:
        """Remove the record. Returns ``False`` if it did not exist."""
        ...
