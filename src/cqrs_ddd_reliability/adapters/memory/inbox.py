"""InMemoryInboxStore — dict-backed fake for unit tests."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ...ports.inbox import IInboxStore, InboxRecord
from ...primitives.exceptions import DuplicateKeyError

if TYPE_CHECKING:
    from datetime import datetime


class InMemoryInboxStore(IInboxStore):
    """In-memory implementation of ``IInboxStore``.

    Every method completes without awaiting, so within one event loop
    ``add`` and ``claim_for_retry`` are atomic just like their
    unique-constraint and conditional-update SQL counterparts.
    """

    def __init__(self) -> None:
        self._records: dict[str, InboxRecord] = {}

    async def add(
        self,
        record: InboxRecord,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        if record.message_id in self._records:
            raise DuplicateKeyError("InboxRecord", record.message_id)
        self._records[record.message_id] = replace(record)

    async def get(
        self,
        message_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> InboxRecord | None:
        record = self._records.get(message_id)
        return replace(record) if record else None

    async def mark_succeeded(
        self,
        message_id: str,
        response: str | None,
        processed_at: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(message_id)
        if record is None:
            return
        record.processed_at = processed_at
        record.cached_response = response
        record.last_error = None
        record.next_retry_at = None

    async def mark_failed(
        self,
        message_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        record = self._records.get(message_id)
        if record is None or record.is_settled:
            return
        record.last_error = error
        record.retry_count += 1
        record.next_retry_at = next_retry_at

    async def claim_for_retry(
        self,
        message_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> bool:
        record = self._records.get(message_id)
        if record is None or record.processed_at is not None:
            return False
        if record.last_error is None:
            return False
        record.last_error = None
        return True

    async def get_expired(
        self,
        batch_size: int,
        now: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> list[InboxRecord]:
        expired = [
            r
            for r in self._records.values()
            if r.expires_at < now and r.processed_at is not None
        ]
        expired.sort(key=lambda r: r.expires_at)
        return [replace(r) for r in expired[:batch_size]]

    async def remove(
        self,
        message_ids: list[str],
        uow: Any | None = None,  # noqa: ARG002
    ) -> int:
        removed = 0
        for message_id in message_ids:
            record = self._records.get(message_id)
            if record is not None and record.processed_at is not None:
                del self._records[message_id]
                removed += 1
        return removed

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
