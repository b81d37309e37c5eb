"""Exceptions for cqrs-ddd-reliability."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


class ReliabilityError(Exception):
    """Root exception for the reliable-messaging engines."""


# ── Persistence ──────────────────────────────────────────────────────


class DuplicateKeyError(ReliabilityError):
    """Raised when a record is inserted with a primary key that already exists.

    The inbox guard relies on this to detect a concurrent claim of the same
    idempotency key; it is converted to :class:`InboxConflictError` there.
    """

    def __init__(self, record_type: str, key: object) -> None:
        self.record_type = record_type
        self.key = key
        super().__init__(f"{record_type} with key={key!r} already exists")


class RecordNotFoundError(ReliabilityError):
    """Raised when a record cannot be found by its key.

    Stores never raise this from ``mark_*`` operations: a record may have been
    removed by cleanup, so those calls are no-ops instead.
    """

    def __init__(self, record_type: str, key: object) -> None:
        self.record_type = record_type
        self.key = key
        super().__init__(f"{record_type} with key={key!r} not found")


class SagaNotFoundError(RecordNotFoundError):
    """Raised by the saga coordinator when a saga id is unknown."""

    def __init__(self, saga_id: str) -> None:
        super().__init__("Saga", saga_id)
        self.saga_id = saga_id


class SessionManagementError(ReliabilityError):
    """Raised when a database session cannot be created or closed."""


class UnitOfWorkError(ReliabilityError):
    """Raised when a commit or rollback fails."""


# ── Dispatch / codec ─────────────────────────────────────────────────


class DispatchError(ReliabilityError):
    """A dispatch attempt failed and may be retried."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


class CodecError(ReliabilityError):
    """Base class for payload serialization problems."""


class SerializationError(CodecError):
    """Raised when a payload cannot be encoded."""


class TypeResolutionError(CodecError):
    """Raised when a payload type name is not registered."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Payload type {type_name!r} is not registered")


class DeserializationError(CodecError):
    """Raised when a stored payload cannot be decoded into its registered type.

    Counted as a dispatch failure: the type may become decodable after a
    deployment, so the record is retried until it dead-letters.
    """

    def __init__(self, type_name: str, reason: str) -> None:
        self.type_name = type_name
        self.reason = reason
        super().__init__(f"Cannot deserialize payload of type {type_name!r}: {reason}")


# ── Sagas ────────────────────────────────────────────────────────────


class InvalidTransitionError(ReliabilityError):
    """Raised when a saga status transition is not allowed from its current state."""

    def __init__(self, saga_id: str, current: str, target: str) -> None:
        self.saga_id = saga_id
        self.current = current
        self.target = target
        super().__init__(f"Saga {saga_id} cannot move from {current} to {target}")


# ── Scheduling ───────────────────────────────────────────────────────


class InvalidCronExpressionError(ReliabilityError):
    """Raised when a cron expression cannot be parsed."""

    def __init__(self, expression: str | None, reason: str = "") -> None:
        self.expression = expression
        msg = f"Invalid cron expression {expression!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ── Inbox ────────────────────────────────────────────────────────────


class InboxError(ReliabilityError):
    """Base class for inbox guard rejections (caller-correctable)."""


class InboxConflictError(InboxError):
    """Another execution for the same message id is in flight.

    The caller should not retry immediately; the in-flight attempt either
    settles (and later calls get the cached response) or fails.
    """

    def __init__(
        self,
        message_id: str,
        reason: str = "message is already being processed",
        *,
        retry_after: datetime | None = None,
    ) -> None:
        self.message_id = message_id
        self.reason = reason
        self.retry_after = retry_after
        super().__init__(f"Conflict for message {message_id!r}: {reason}")


class InboxRetriesExhaustedError(InboxError):
    """The message failed too many times and is dead-lettered."""

    def __init__(self, message_id: str, retry_count: int) -> None:
        self.message_id = message_id
        self.retry_count = retry_count
        super().__init__(
            f"Message {message_id!r} has failed {retry_count} times "
            "and will not be retried"
        )
