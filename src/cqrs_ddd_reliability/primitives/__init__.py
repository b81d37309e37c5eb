"""Primitives: exceptions."""

from __future__ import annotations

from .exceptions import (
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
    SessionManagementError,
    TypeResolutionError,
    UnitOfWorkError,
)

__all__ = [
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
    "SessionManagementError",
    "TypeResolutionError",
    "UnitOfWorkError",
]
