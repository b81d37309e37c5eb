"""Outbox — appends serialized payloads to the outbox in the caller's transaction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..clock import SystemClock
from ..ports.outbox import OutboxRecord

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.outbox import IOutboxStore
    from ..ports.unit_of_work import UnitOfWork

logger = logging.getLogger("cqrs_ddd.outbox")


class Outbox:
    """
    Write side of the transactional outbox.

    Pass the ``uow`` of the business write so the record commits (or rolls
    back) together with it. ``on_enqueued`` (e.g. a bound
    ``OutboxProcessor.trigger`` wrapped in a coroutine) runs after commit
    when a ``uow`` is given, or right after the insert otherwise.

    Usage::

        async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
            uow.session.add(order)
            await outbox.enqueue(OrderPlaced(order_id=order.id), uow=uow)
    """

    def __init__(
        self,
        store: IOutboxStore,
        codec: IPayloadCodec,
        *,
        clock: IClock | None = None,
        on_enqueued: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.clock = clock or SystemClock()
        self._on_enqueued = on_enqueued

    async def enqueue(
        self, payload: Any, uow: UnitOfWork | None = None
    ) -> OutboxRecord:
        """Serialize *payload* and append it. Returns the stored record.

        Raises:
            TypeResolutionError: If the payload class is not registered.
        """
        record = self._to_record(payload)
        await self.store.add(record, uow=uow)
        logger.debug("Enqueued outbox record %s (%s)", record.id, record.payload_type)
        await self._notify(uow)
        return record

    async def enqueue_many(
        self, payloads: Iterable[Any], uow: UnitOfWork | None = None
    ) -> list[OutboxRecord]:
        records = [self._to_record(p) for p in payloads]
        for record in records:
            await self.store.add(record, uow=uow)
        if records:
            logger.debug("Enqueued %d outbox records", len(records))
            await self._notify(uow)
        return records

    def _to_record(self, payload: Any) -> OutboxRecord:
        return OutboxRecord(
            payload_type=self.codec.registered_name_of(payload),
            payload=self.codec.serialize(payload),
            created_at=self.clock.now(),
        )

    async def _notify(self, uow: UnitOfWork | None) -> None:
        if self._on_enqueued is None:
            return
        if uow is not None:
            uow.on_commit(self._on_enqueued)
        else:
            await self._on_enqueued()
