"""IInboxStore — idempotency-window protocol for inbound requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@dataclass
class InboxRecord:
    """
    Record of one inbound request, keyed by the caller's idempotency key.

    A record is *settled* once it has been processed without error; only
    settled records replay their cached response.
    """

    message_id: str
    request_type: str
    expires_at: datetime
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    cached_response: str | None = None
    last_error: str | None = None
    retry_count: int = 0
    next_retry_at: datetime | None = None
    metadata: dict[str, Any] | None = None

    @property
    def is_settled(self) -> bool:
        return self.processed_at is not None and self.last_error is None

    @property
    def is_failed(self) -> bool:
        return self.last_error is not None

    @property
    def is_in_flight(self) -> bool:
        return self.processed_at is None and self.last_error is None


@runtime_checkable
class IInboxStore(Protocol):
    """Persistence port for :class:`InboxRecord`."""

    async def add(self, record: InboxRecord, uow: UnitOfWork | None = None) -> None:
        """
        Atomically claim ``record.message_id``.

        Raises:
            DuplicateKeyError: If the key already exists (the claim was lost).
        """
        ...

    async def get(
        self, message_id: str, uow: UnitOfWork | None = None
    ) -> InboxRecord | None: ...

    async def mark_succeeded(
        self,
        message_id: str,
        response: str | None,
        processed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Settle the record and cache *response*. Unknown keys are ignored."""
        ...

    async def mark_failed(
        self,
        message_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Record a failed attempt. Unknown keys are ignored."""
        ...

    async def claim_for_retry(
        self, message_id: str, uow: UnitOfWork | None = None
    ) -> bool:
        """
        Compare-and-set a failed record back to in flight.

        Clears ``last_error`` only while the record is unsettled and failed.
        Returns ``True`` when this caller won the claim.
        """
        ...

    async def get_expired(
        self, batch_size: int, now: datetime, uow: UnitOfWork | None = None
    ) -> list[InboxRecord]:
        """Settled records whose ``expires_at`` has passed, oldest first."""
        ...

    async def remove(
        self, message_ids: list[str], uow: UnitOfWork | None = None
    ) -> int:
        """Delete settled records by key. Returns the number removed."""
        ...
