"""Ports — protocols and record types consumed by the reliability engines."""

from __future__ import annotations

from .background_worker import IBackgroundWorker
from .clock import IClock
from .codec import IPayloadCodec
from .dispatcher import DispatchFailure, DispatchResult, IRequestDispatcher
from .inbox import IInboxStore, InboxRecord
from .outbox import IOutboxStore, OutboxRecord
from .saga import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ISagaStore,
    SagaRecord,
    SagaStatus,
)
from .scheduling import IScheduledStore, ScheduledRecord
from .unit_of_work import UnitOfWork

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "DispatchFailure",
    "DispatchResult",
    "IBackgroundWorker",
    "IClock",
    "IInboxStore",
    "IOutboxStore",
    "IPayloadCodec",
    "IRequestDispatcher",
    "ISagaStore",
    "IScheduledStore",
    "InboxRecord",
    "OutboxRecord",
    "SagaRecord",
    "SagaStatus",
    "ScheduledRecord",
    "UnitOfWork",
]
