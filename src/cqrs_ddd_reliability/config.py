"""Option groups for the reliability engines and environment-backed settings."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProcessorOptions(BaseModel):
    """Cadence and retry budget of a polling processor (outbox or scheduler)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    batch_size: int = Field(default=100, gt=0)
    max_retries: int = Field(default=3, ge=0)
    base_retry_delay: timedelta = Field(default=timedelta(seconds=5))
    processing_interval: timedelta = Field(default=timedelta(seconds=30))
    enable_processor: bool = True


class InboxOptions(BaseModel):
    """Idempotency window and retry budget of the inbox guard."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    inbox_ttl: timedelta = Field(default=timedelta(days=7))
    max_retries: int = Field(default=3, ge=0)
    base_retry_delay: timedelta = Field(default=timedelta(seconds=5))
    purge_batch_size: int = Field(default=100, gt=0)


class SagaOptions(BaseModel):
    """Stuck-saga detection thresholds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stuck_saga_threshold: timedelta = Field(default=timedelta(hours=1))
    batch_size: int = Field(default=100, gt=0)
    scan_interval: timedelta = Field(default=timedelta(minutes=5))
    enable_monitor: bool = True


class ReliabilitySettings(BaseSettings):
    """Typed settings for all engines, loaded from ``RELIABILITY_*`` variables.

    Nested fields use ``__``, e.g. ``RELIABILITY_OUTBOX__BATCH_SIZE=50`` or
    ``RELIABILITY_INBOX__INBOX_TTL=P1D``.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELIABILITY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    outbox: ProcessorOptions = Field(default_factory=ProcessorOptions)
    scheduling: ProcessorOptions = Field(default_factory=ProcessorOptions)
    inbox: InboxOptions = Field(default_factory=InboxOptions)
    sagas: SagaOptions = Field(default_factory=SagaOptions)
