"""InMemoryScheduledStore — dict-backed fake for unit tests."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ...ports.scheduling import IScheduledStore, ScheduledRecord
from ...primitives.exceptions import DuplicateKeyError

if TYPE_CHECKING:
    from datetime import datetime


def _is_due(record: ScheduledRecord, max_retries: int, now: datetime) -> bool:
    if record.processed_at is not None and not record.is_recurring:
        return False
    if record.retry_count >= max_retries:
        return False
    if record.next_retry_at is not None:
        return record.next_retry_at <= now
    return record.scheduled_at <= now


class InMemoryScheduledStore(IScheduledStore):
    """In-memory implementation of ``IScheduledStore``."""

    def __init__(self) -> None:
        self._records: dict[str, ScheduledRecord] = {}

    async def add(
        self,
        record: ScheduledRecord,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        if record.id in self._records:
            raise DuplicateKeyError("ScheduledRecord", record.id)
        self._records[record.id] = replace(record)

    async def get(
        self,
        record_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> ScheduledRecord | None:
        record = self._records.get(record_id)
        return replace(record) if record else None

    async def get_due(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> list[ScheduledRecord]:
        due = [r for r in self._records.values() if _is_due(r, max_retries, now)]
        due.sort(key=lambda r: r.scheduled_at)
        return [replace(r) for r in due[:batch_size]]

    async def mark_succeeded(
        self,
        record_id: str,
        executed_at: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(record_id)
        if record is None:
            return
        record.processed_at = executed_at
        record.last_executed_at = executed_at
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
        if record is None:
            return
        if record.processed_at is not None and not record.is_recurring:
            return
        record.last_error = error
        record.retry_count += 1
        record.next_retry_at = next_retry_at

    async def reschedule_recurring(
        self,
        record_id: str,
        next_scheduled_at: datetime,
        executed_at: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(record_id)
        if record is None:
            return
        record.scheduled_at = next_scheduled_at
        record.last_executed_at = executed_at
        record.processed_at = None
        record.last_error = None
        record.retry_count = 0
        record.next_retry_at = None

    async def cancel(
        self,
        record_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> bool:
        return self._records.pop(record_id, None) is not None

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
