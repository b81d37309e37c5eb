"""InboxGuard — effectively-once execution of inbound requests by idempotency key."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..clock import SystemClock
from ..config import InboxOptions
from ..ports.dispatcher import DispatchResult
from ..ports.inbox import InboxRecord
from ..primitives.exceptions import (
    CodecError,
    DuplicateKeyError,
    InboxConflictError,
    InboxError,
    InboxRetriesExhaustedError,
)
from ..retry import RetryPolicy

if TYPE_CHECKING:
    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.dispatcher import IRequestDispatcher
    from ..ports.inbox import IInboxStore

logger = logging.getLogger("cqrs_ddd.inbox")


class InboxGuard:
    """
    Sits in front of the dispatcher and de-duplicates requests by message id.

    For each call to :meth:`process`:

    * a new key is claimed by inserting an in-flight record (the store's
      unique key makes the claim atomic) and the request is dispatched;
    * a settled key replays the cached response without dispatching;
    * an in-flight key raises :class:`InboxConflictError`;
    * a failed key is re-run once its backoff has elapsed and this caller
      wins ``claim_for_retry``, or raises :class:`InboxRetriesExhaustedError`
      once the retry budget is spent.

    Business failures are recorded and returned; exceptions from the
    dispatcher are recorded and re-raised. A cancelled dispatch leaves the
    record in flight.
    """

    def __init__(
        self,
        store: IInboxStore,
        dispatcher: IRequestDispatcher,
        codec: IPayloadCodec,
        *,
        options: InboxOptions | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: IClock | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.codec = codec
        self.options = options or InboxOptions()
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=self.options.max_retries,
            base_delay=self.options.base_retry_delay,
        )
        self.clock = clock or SystemClock()

    async def process(
        self,
        message_id: str | None,
        request: Any,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> DispatchResult[Any]:
        """Dispatch *request* at most once per settled *message_id*.

        Raises:
            InboxError: If *message_id* is missing or blank.
            InboxConflictError: If the key is in flight, its retry is not yet
                due, or another caller won the retry claim.
            InboxRetriesExhaustedError: If the key is dead-lettered.
        """
        if not message_id or not message_id.strip():
            raise InboxError("Inbound request has no message id")

        now = self.clock.now()
        record = InboxRecord(
            message_id=message_id,
            request_type=self.codec.type_name_of(request),
            received_at=now,
            expires_at=now + self.options.inbox_ttl,
            metadata=metadata,
        )
        try:
            await self.store.add(record)
        except DuplicateKeyError:
            replay = await self._resolve_existing(message_id)
            if replay is not None:
                return replay

        return await self._execute(message_id, request)

    async def _resolve_existing(self, message_id: str) -> DispatchResult[Any] | None:
        """Return a replayed result, raise, or return ``None`` to re-run."""
        existing = await self.store.get(message_id)
        if existing is None:
            # Purged between the failed insert and this read.
            raise InboxConflictError(message_id, "message was concurrently removed")

        if existing.is_settled:
            logger.debug("Replaying cached response for message %s", message_id)
            if existing.cached_response is None:
                return DispatchResult.ok(None)
            return DispatchResult.ok(self.codec.unpack(existing.cached_response))

        if existing.is_in_flight:
            raise InboxConflictError(message_id)

        if self.retry_policy.is_dead_lettered(existing.retry_count):
            logger.warning(
                "Message %s rejected: failed %d times",
                message_id,
                existing.retry_count,
            )
            raise InboxRetriesExhaustedError(message_id, existing.retry_count)

        now = self.clock.now()
        if existing.next_retry_at is not None and existing.next_retry_at > now:
            raise InboxConflictError(
                message_id,
                "retry is not allowed yet",
                retry_after=existing.next_retry_at,
            )

        if not await self.store.claim_for_retry(message_id):
            raise InboxConflictError(message_id, "retry was claimed by another caller")

        logger.info(
            "Retrying message %s (attempt %d)", message_id, existing.retry_count + 1
        )
        return None

    async def _execute(self, message_id: str, request: Any) -> DispatchResult[Any]:
        try:
            result = await self.dispatcher.dispatch(request)
        except Exception as exc:
            await self._record_failure(message_id, f"{type(exc).__name__}: {exc}")
            raise

        if not result.success:
            await self._record_failure(message_id, str(result.failure))
            return result

        try:
            response = self.codec.pack(result.value)
        except CodecError as exc:
            await self._record_failure(message_id, str(exc))
            raise

        await self.store.mark_succeeded(message_id, response, self.clock.now())
        logger.debug("Message %s processed", message_id)
        return result

    async def _record_failure(self, message_id: str, error: str) -> None:
        existing = await self.store.get(message_id)
        retry_count = existing.retry_count if existing else 0
        attempt, next_retry_at = self.retry_policy.failure_outcome(
            retry_count, self.clock.now()
        )
        await self.store.mark_failed(message_id, error, next_retry_at)
        logger.error("Message %s failed attempt %d: %s", message_id, attempt, error)

    async def purge_expired(self, batch_size: int | None = None) -> int:
        """Remove settled records whose idempotency window has passed.

        Failed records are never purged; they stay visible as dead letters.
        Returns the number of records removed.
        """
        if batch_size is None:
            batch_size = self.options.purge_batch_size
        expired = await self.store.get_expired(batch_size, self.clock.now())
        if not expired:
            return 0
        removed = await self.store.remove([r.message_id for r in expired])
        logger.info("Purged %d expired inbox records", removed)
        return removed
