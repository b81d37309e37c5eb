"""InMemorySagaStore — dict-backed fake for unit tests."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ...ports.saga import (
    ACTIVE_STATUSES,
    ISagaStore,
    SagaRecord,
    SagaStatus,
)
from ...primitives.exceptions import DuplicateKeyError

if TYPE_CHECKING:
    from datetime import datetime, timedelta


class InMemorySagaStore(ISagaStore):
    """In-memory implementation of ``ISagaStore``."""

    def __init__(self) -> None:
        self._records: dict[str, SagaRecord] = {}

    async def add(
        self,
        record: SagaRecord,
        uow: Any | None = None,  # noqa: ARG002
    ) -> None:
        if record.saga_id in self._records:
            raise DuplicateKeyError("SagaRecord", record.saga_id)
        self._records[record.saga_id] = replace(record)

    async def get(
        self,
        saga_id: str,
        uow: Any | None = None,  # noqa: ARG002
    ) -> SagaRecord | None:
        record = self._records.get(saga_id)
        return replace(record) if record else None

    async def update(
        self,
        record: SagaRecord,
        uow: Any | None = None,  # noqa: ARG002
        *,
        expected_status: SagaStatus | None = None,
    ) -> bool:
        stored = self._records.get(record.saga_id)
        if stored is None:
            return False
        if expected_status is not None and stored.status is not expected_status:
            return False
        self._records[record.saga_id] = replace(record)
        return True

    async def get_stuck(
        self,
        older_than: timedelta,
        batch_size: int,
        now: datetime,
        uow: Any | None = None,  # noqa: ARG002
    ) -> list[SagaRecord]:
        cutoff = now - older_than
        stuck = [
            r
            for r in self._records.values()
            if r.status in ACTIVE_STATUSES and r.last_updated_at < cutoff
        ]
        stuck.sort(key=lambda r: r.last_updated_at)
        return [replace(r) for r in stuck[:batch_size]]

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
