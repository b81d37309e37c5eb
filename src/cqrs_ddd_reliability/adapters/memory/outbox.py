"""InMemoryOutboxStore — dict-backed fake for unit tests."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ...ports.outbox import IOutboxStore, OutboxRecord
from ...primitives.exceptions import DuplicateKeyError

if TYPE_CHECKING:
    from datetime import datetime


class InMemoryOutboxStore(IOutboxStore):
    """In-memory implementation of ``IOutboxStore``.

    Records are copied on the way in and out so callers cannot mutate
    stored state behind the store's back.
    """

    def __init__(self) -> None:
        self._records: dict[str, OutboxRecord] = {}

    async def add(
        self,
        record: OutboxRecord,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        if record.id in self._records:
            raise DuplicateKeyError("OutboxRecord", record.id)
        self._records[record.id] = replace(record)

    async def get(
        self,
        record_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> OutboxRecord | None:
        record = self._records.get(record_id)
        return replace(record) if record else None

    async def get_pending(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> list[OutboxRecord]:
        pending = [
            r
            for r in self._records.values()
            if r.processed_at is None
            and r.retry_count < max_retries
            and (r.next_retry_at is None or r.next_retry_at <= now)
        ]
        pending.sort(key=lambda r: r.created_at)
        return [replace(r) for r in pending[:batch_size]]

    async def mark_succeeded(
        self,
        record_id: str,
        processed_at: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(record_id)
        if record is None:
            return
        record.processed_at = processed_at
        record.last_error = None
        record.next_retry_at = None

    async def mark_failed(
        self,
        record_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(record_id)
        if record is None or record.processed_at is not None:
            return
        record.last_error = error
        record.retry_count += 1
        record.next_retry_at = next_retry_at

    # ── Test helpers ─────────────────────────────────────────────

    def all(self) -> list[OutboxRecord]:
        return [replace(r) for r in self._records.values()]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
