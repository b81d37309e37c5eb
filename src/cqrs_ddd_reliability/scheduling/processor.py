"""SchedulerProcessor — dispatches due one-shot and recurring scheduled records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..clock import SystemClock
from ..config import ProcessorOptions
from ..primitives.exceptions import InvalidCronExpressionError
from ..processing import BatchResult, decode_and_dispatch
from ..retry import RetryPolicy
from ..worker import PeriodicWorker
from .cron import next_occurrence, validate_cron

if TYPE_CHECKING:
    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.dispatcher import IRequestDispatcher
    from ..ports.scheduling import IScheduledStore, ScheduledRecord

logger = logging.getLogger("cqrs_ddd.scheduling")


class SchedulerProcessor(PeriodicWorker[BatchResult]):
    """
    Dispatches due scheduled records with the outbox's retry discipline.

    * One-shot success settles the record.
    * Recurring success moves ``scheduled_at`` to the next cron occurrence
      strictly after now and resets the retry state.
    * Failure counts an attempt and backs off; once the retry budget is
      spent the record is dead-lettered, and a dead-lettered recurring
      record stops firing.

    A recurring record with an unparsable cron expression fails without
    being dispatched.
    """

    def __init__(
        self,
        store: IScheduledStore,
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
        result = BatchResult()
        due = await self.store.get_due(
            self.options.batch_size,
            self.retry_policy.max_retries,
            self.clock.now(),
        )
        if not due:
            return result

        for record in due:
            try:
                await self._process_record(record, result)
            except Exception:
                logger.exception(
                    "Failed to record outcome for scheduled record %s", record.id
                )
                result.failed += 1

        logger.info(
            "Scheduler batch: %d succeeded, %d failed, %d dead-lettered",
            result.succeeded,
            result.failed,
            result.dead_lettered,
        )
        return result

    async def _process_record(
        self, record: ScheduledRecord, result: BatchResult
    ) -> None:
        error: str | None
        try:
            if record.is_recurring:
                validate_cron(record.cron_expression)
        except InvalidCronExpressionError as exc:
            error = str(exc)
        else:
            logger.info(
                "Executing scheduled %s (ID: %s)", record.request_type, record.id
            )
            error = await decode_and_dispatch(
                self.codec, self.dispatcher, record.payload, record.request_type
            )

        now = self.clock.now()
        if error is None:
            if record.is_recurring:
                next_at = next_occurrence(record.cron_expression, now)
                await self.store.reschedule_recurring(record.id, next_at, now)
                logger.debug(
                    "Recurring record %s rescheduled for %s",
                    record.id,
                    next_at.isoformat(),
                )
            else:
                await self.store.mark_succeeded(record.id, now)
            result.succeeded += 1
            return

        attempt, next_retry_at = self.retry_policy.failure_outcome(
            record.retry_count, now
        )
        await self.store.mark_failed(record.id, error, next_retry_at)
        if next_retry_at is None:
            logger.warning(
                "Scheduled record %s (%s) dead-lettered after %d attempts: %s",
                record.id,
                record.request_type,
                attempt,
                error,
            )
            result.dead_lettered += 1
        else:
            logger.error(
                "Scheduled record %s (%s) failed attempt %d, retry at %s: %s",
                record.id,
                record.request_type,
                attempt,
                next_retry_at.isoformat(),
                error,
            )
            result.failed += 1

    async def _process(self) -> BatchResult:
        return await self.process_batch()
