from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Enum, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..ports.saga import SagaStatus
from .types import JSONType, UTCDateTime


class Base(DeclarativeBase):
    """Declarative base for the reliability tables."""


class OutboxRecordModel(Base):
    """
    Model for the transactional outbox.
    Written in the business transaction, drained by ``OutboxProcessor``.
    """

    __tablename__ = "outbox_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    payload_type: Mapped[str] = mapped_column(String(255))
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("ix_outbox_records_pending", "processed_at", "created_at"),
        Index("ix_outbox_records_next_retry_at", "next_retry_at"),
    )


class InboxRecordModel(Base):
    """Model for the inbox; the primary key is the caller's idempotency key."""

    __tablename__ = "inbox_records"

    message_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    request_type: Mapped[str] = mapped_column(String(255))
    received_at: Mapped[datetime] = mapped_column(UTCDateTime)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime)
    cached_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    __table_args__ = (
        Index("ix_inbox_records_expiry", "expires_at", "processed_at"),
    )


class SagaRecordModel(Base):
    """Model for saga orchestration state."""

    __tablename__ = "saga_records"

    saga_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    saga_type: Mapped[str] = mapped_column(String(255), index=True)
    data: Mapped[str] = mapped_column(Text)
    status: Mapped[SagaStatus] = mapped_column(
        Enum(SagaStatus), default=SagaStatus.RUNNING
    )
    current_step: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime)
    last_updated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_saga_records_stuck", "status", "last_updated_at"),
    )


class ScheduledRecordModel(Base):
    """Model for one-shot and recurring scheduled commands."""

    __tablename__ = "scheduled_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    request_type: Mapped[str] = mapped_column(String(255))
    payload: Mapped[str] = mapped_column(Text)
    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_executed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    cron_expression: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_scheduled_records_due", "scheduled_at"),
        Index("ix_scheduled_records_next_retry_at", "next_retry_at"),
    )
