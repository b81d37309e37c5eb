"""IOutboxStore — transactional outbox protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import uuid4

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@dataclass
class OutboxRecord:
    """A serialized command or event waiting in the transactional outbox."""

    payload_type: str
    payload: str
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    last_error: str | None = None
    retry_count: int = 0
    next_retry_at: datetime | None = None

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None


@runtime_checkable
class IOutboxStore(Protocol):
    """Persistence port for :class:`OutboxRecord`."""

    async def add(self, record: OutboxRecord, uow: UnitOfWork | None = None) -> None:
        """
        Append a record, joining the caller's transaction when *uow* is given.

        Raises:
            DuplicateKeyError: If a record with the same ``id`` exists.
        """
        ...

    async def get(
        self, record_id: str, uow: UnitOfWork | None = None
    ) -> OutboxRecord | None: ...

    async def get_pending(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[OutboxRecord]:
        """
        Unprocessed records that are not dead-lettered and whose retry time
        (if any) has arrived, oldest ``created_at`` first.
        """
        ...

    async def mark_succeeded(
        self,
        record_id: str,
        processed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Settle the record. Unknown ids are ignored."""
        ...

    async def mark_failed(
        self,
        record_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        """
        Record a failed attempt: increments ``retry_count``.

        ``next_retry_at=None`` after a failure means dead-lettered.
        Unknown ids are ignored.
        """
        ...
