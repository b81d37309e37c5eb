"""SQLAlchemy 2.0 async persistence for the reliability stores."""

from .inbox import SQLAlchemyInboxStore
from .models import (
    Base,
    InboxRecordModel,
    OutboxRecordModel,
    SagaRecordModel,
    ScheduledRecordModel,
)
from .outbox import SQLAlchemyOutboxStore
from .sagas import SQLAlchemySagaStore
from .scheduling import SQLAlchemyScheduledStore
from .types import JSONType, UTCDateTime
from .uow import SQLAlchemyUnitOfWork

__all__ = [
    "Base",
    "InboxRecordModel",
    "JSONType",
    "OutboxRecordModel",
    "SQLAlchemyInboxStore",
    "SQLAlchemyOutboxStore",
    "SQLAlchemySagaStore",
    "SQLAlchemyScheduledStore",
    "SQLAlchemyUnitOfWork",
    "SagaRecordModel",
    "ScheduledRecordModel",
    "UTCDateTime",
]
