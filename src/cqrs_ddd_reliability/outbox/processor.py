"""OutboxProcessor — drains pending outbox records through the dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..clock import SystemClock
from ..config import ProcessorOptions
from ..processing import BatchResult, decode_and_dispatch
from ..retry import RetryPolicy
from ..worker import PeriodicWorker

if TYPE_CHECKING:
    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.dispatcher import IRequestDispatcher
    from ..ports.outbox import IOutboxStore, OutboxRecord

logger = logging.getLogger("cqrs_ddd.outbox")


class OutboxProcessor(PeriodicWorker[BatchResult]):
    """
    Dispatches pending outbox records in batches with retry and backoff.

    Lifecycle per batch:
    1. Fetch up to ``batch_size`` pending records from ``IOutboxStore``.
    2. Decode each payload by its registered type name.
    3. Dispatch via ``IRequestDispatcher``.
    4. Mark the record succeeded, or failed with the next retry instant
       (``None`` once the retry budget is spent: dead-lettered).

    A record's outcome is persisted before the next record is touched, so
    cancelling a batch never loses settled work and never marks the
    remaining records as failed.

    Delivery is at-least-once: several processors may share one store and
    no lease is taken, so handlers must be idempotent (see ``InboxGuard``).
    """

    def __init__(
        self,
        store: IOutboxStore,
        dispatcher: IRequestDispatcher,
        codec: IPayloadCodec,
        *,
        options: ProcessorOptions | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: IClock | None = None,
    ) -> None:
        self.options = options or ProcessorOptions()
        super().__init__(
            self.options.processing_interval, enabled=self.options.enable_processor
        )
        self.store = store
        self.dispatcher = dispatcher
        self.codec = codec
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=self.options.max_retries,
            base_delay=self.options.base_retry_delay,
        )
        self.clock = clock or SystemClock()

    async def process_batch(self) -> BatchResult:
        """Process one batch of pending records and return the outcome counts."""
        result = BatchResult()
        records = await self.store.get_pending(
            self.options.batch_size,
            self.retry_policy.max_retries,
            self.clock.now(),
        )
        if not records:
            return result

        logger.debug("Processing %d outbox records", len(records))
        for record in records:
            try:
                await self._process_record(record, result)
            except Exception:
                # Store failure while recording the outcome; the record stays
                # pending and is picked up again next cycle.
                logger.exception(
                    "Failed to record outcome for outbox record %s", record.id
                )
                result.failed += 1

        logger.info(
            "Outbox batch: %d succeeded, %d failed, %d dead-lettered",
            result.succeeded,
            result.failed,
            result.dead_lettered,
        )
        return result

    async def _process_record(self, record: OutboxRecord, result: BatchResult) -> None:
        error = await decode_and_dispatch(
            self.codec, self.dispatcher, record.payload, record.payload_type
        )
        now = self.clock.now()
        if error is None:
            await self.store.mark_succeeded(record.id, now)
            result.succeeded += 1
            return

        attempt, next_retry_at = self.retry_policy.failure_outcome(
            record.retry_count, now
        )
        await self.store.mark_failed(record.id, error, next_retry_at)
        if next_retry_at is None:
            logger.warning(
                "Outbox record %s (%s) dead-lettered after %d attempts: %s",
                record.id,
                record.payload_type,
                attempt,
                error,
            )
            result.dead_lettered += 1
        else:
            logger.error(
                "Outbox record %s (%s) failed attempt %d, retry at %s: %s",
                record.id,
                record.payload_type,
                attempt,
                next_retry_at.isoformat(),
                error,
            )
            result.failed += 1

    async def _process(self) -> BatchResult:
        return await self.process_batch()
