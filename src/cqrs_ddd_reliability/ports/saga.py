"""ISagaStore — persisted orchestration state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import uuid4

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


class SagaStatus(str, Enum):
    """Lifecycle states of a saga."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    COMPENSATING = "compensating"
    COMPENSATED = "compensated"


TERMINAL_STATUSES = frozenset(
    {SagaStatus.COMPLETED, SagaStatus.FAILED, SagaStatus.COMPENSATED}
)
ACTIVE_STATUSES = frozenset({SagaStatus.RUNNING, SagaStatus.COMPENSATING})


@dataclass
class SagaRecord:
    """State of one saga instance."""

    saga_type: str
    data: str
    saga_id: str = field(default_factory=lambda: str(uuid4()))
    status: SagaStatus = SagaStatus.RUNNING
    current_step: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    completed_at: datetime | None = None
    last_error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@runtime_checkable
class ISagaStore(Protocol):
    """Persistence port for :class:`SagaRecord`."""

    async def add(self, record: SagaRecord, uow: UnitOfWork | None = None) -> None:
        """
        Raises:
            DuplicateKeyError: If ``saga_id`` already exists.
        """
        ...

    async def get(
        self, saga_id: str, uow: UnitOfWork | None = None
    ) -> SagaRecord | None: ...

    async def update(
        self,
        record: SagaRecord,
        uow: UnitOfWork | None = None,
        *,
        expected_status: SagaStatus | None = None,
    ) -> bool:
        """Overwrite the stored record as one compare-and-update.

        With *expected_status* the write only happens while the stored
        status still equals it. Returns ``False`` when nothing was written
        (unknown id or status mismatch).
        """
        ...

    async def get_stuck(
        self,
        older_than: timedelta,
        batch_size: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[SagaRecord]:
        """
        Running or compensating sagas not updated since ``now - older_than``,
        least recently updated first.
        """
        ...
