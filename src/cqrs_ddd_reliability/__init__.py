"""cqrs-ddd-reliability — Reliable messaging for the CQRS/DDD toolkit.

Transactional outbox, idempotent inbox, saga coordination and scheduled
commands over pluggable stores. SQLAlchemy stores live in
:mod:`cqrs_ddd_reliability.persistence`.
"""

from __future__ import annotations

# ── Adapters ────────────────────────────────────────────────────
from .adapters import (
    CallableDispatcher,
    InMemoryInboxStore,
    InMemoryOutboxStore,
    InMemorySagaStore,
    InMemoryScheduledStore,
)

# ── Support ─────────────────────────────────────────────────────
from .clock import FrozenClock, SystemClock
from .codec import JsonPayloadCodec, PayloadTypeRegistry
from .config import (
    InboxOptions,
    ProcessorOptions,
    ReliabilitySettings,
    SagaOptions,
)

# ── Engines ─────────────────────────────────────────────────────
from .inbox import InboxGuard
from .outbox import Outbox, OutboxProcessor

# ── Ports ───────────────────────────────────────────────────────
from .ports import (
    DispatchFailure,
    DispatchResult,
    IBackgroundWorker,
    IClock,
    IInboxStore,
    InboxRecord,
    IOutboxStore,
    IPayloadCodec,
    IRequestDispatcher,
    ISagaStore,
    IScheduledStore,
    OutboxRecord,
    SagaRecord,
    SagaStatus,
    ScheduledRecord,
    UnitOfWork,
)

# ── Primitives ──────────────────────────────────────────────────
from .primitives.exceptions import (
    CodecError,
    DeserializationError,
    DispatchError,
    DuplicateKeyError,
    InboxConflictError,
    InboxError,
    InboxRetriesExhaustedError,
    InvalidCronExpressionError,
    InvalidTransitionError,
    RecordNotFoundError,
    ReliabilityError,
    SagaNotFoundError,
    SerializationError,
    TypeResolutionError,
)
from .processing import BatchResult
from .retry import RetryPolicy, is_dead_lettered
from .sagas import SagaCoordinator, StuckKind, StuckSaga, StuckSagaMonitor
from .scheduling import MessageScheduler, SchedulerProcessor
from .worker import PeriodicWorker

__all__ = [
    # Adapters
    "CallableDispatcher",
    "InMemoryInboxStore",
    "InMemoryOutboxStore",
    "InMemorySagaStore",
    "InMemoryScheduledStore",
    # Support
    "BatchResult",
    "FrozenClock",
    "InboxOptions",
    "JsonPayloadCodec",
    "PayloadTypeRegistry",
    "PeriodicWorker",
    "ProcessorOptions",
    "ReliabilitySettings",
    "RetryPolicy",
    "SagaOptions",
    "SystemClock",
    "is_dead_lettered",
    # Engines
    "InboxGuard",
    "MessageScheduler",
    "Outbox",
    "OutboxProcessor",
    "SagaCoordinator",
    "SchedulerProcessor",
    "StuckKind",
    "StuckSaga",
    "StuckSagaMonitor",
    # Ports
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
    # Exceptions
    "CodecError",
    "DeserializationError",
    "DispatchError",
    "DuplicateKeyError",
    "InboxConflictError",
    "InboxError",
    "InboxRetriesExhaustedError",
    "InvalidCronExpressionError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "ReliabilityError",
    "SagaNotFoundError",
    "SerializationError",
    "TypeResolutionError",
]
