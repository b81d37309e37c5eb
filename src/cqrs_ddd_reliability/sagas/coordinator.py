"""SagaCoordinator — persisted saga lifecycle and stuck-saga detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..clock import SystemClock
from ..config import SagaOptions
from ..ports.saga import SagaRecord, SagaStatus
from ..primitives.exceptions import InvalidTransitionError, SagaNotFoundError

if TYPE_CHECKING:
    from datetime import datetime, timedelta

    from ..ports.clock import IClock
    from ..ports.codec import IPayloadCodec
    from ..ports.saga import ISagaStore
    from ..ports.unit_of_work import UnitOfWork

logger = logging.getLogger("cqrs_ddd.sagas")

ALLOWED_TRANSITIONS: dict[SagaStatus, frozenset[SagaStatus]] = {
    SagaStatus.RUNNING: frozenset(
        {SagaStatus.COMPLETED, SagaStatus.FAILED, SagaStatus.COMPENSATING}
    ),
    SagaStatus.COMPENSATING: frozenset({SagaStatus.COMPENSATED}),
    SagaStatus.COMPLETED: frozenset(),
    SagaStatus.FAILED: frozenset(),
    SagaStatus.COMPENSATED: frozenset(),
}


def can_transition(current: SagaStatus, target: SagaStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class StuckKind(str, Enum):
    """Why a saga was reported as stuck."""

    STALLED = "stalled"
    COMPENSATION_STALLED = "compensation_stalled"


@dataclass(frozen=True)
class StuckSaga:
    """A saga that has not been updated within the stuck threshold."""

    record: SagaRecord
    kind: StuckKind

    @property
    def saga_id(self) -> str:
        return self.record.saga_id

    def idle_for(self, now: datetime) -> timedelta:
        return now - self.record.last_updated_at


class SagaCoordinator:
    """
    Drives saga records through their lifecycle.

    Status moves ``RUNNING -> COMPLETED | FAILED | COMPENSATING`` and
    ``COMPENSATING -> COMPENSATED``; any other move raises
    :class:`InvalidTransitionError`. Every mutation refreshes
    ``last_updated_at``, which is the only signal stuck detection uses.

    Saga data is stored through the codec's self-describing ``pack`` format,
    so :meth:`load_data` returns the registered type (or plain JSON values).

    Every write is a compare-and-update on the status that was read, so of
    two concurrent callers racing from the same status only one wins; the
    other gets :class:`InvalidTransitionError` with the status it lost to.
    """

    def __init__(
        self,
        store: ISagaStore,
        codec: IPayloadCodec,
        *,
        options: SagaOptions | None = None,
        clock: IClock | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.options = options or SagaOptions()
        self.clock = clock or SystemClock()

    # ── Lifecycle ────────────────────────────────────────────────

    async def create(
        self,
        saga_type: str,
        initial_data: Any = None,
        *,
        saga_id: str | None = None,
        uow: UnitOfWork | None = None,
    ) -> SagaRecord:
        """Persist a new RUNNING saga at step 0."""
        now = self.clock.now()
        record = SagaRecord(
            saga_type=saga_type,
            data=self.codec.pack(initial_data),
            started_at=now,
            last_updated_at=now,
        )
        if saga_id is not None:
            record.saga_id = saga_id
        await self.store.add(record, uow=uow)
        logger.info("Saga %s (%s) started", record.saga_id, saga_type)
        return record

    async def advance(
        self,
        saga_id: str,
        new_data: Any,
        new_step: int,
        *,
        uow: UnitOfWork | None = None,
    ) -> SagaRecord:
        """Persist new data and step without changing status.

        The step may decrease: compensation walks the steps in reverse.
        """
        if new_step < 0:
            raise ValueError("new_step must be >= 0")
        record = await self.get(saga_id, uow=uow)
        if record.is_terminal:
            raise InvalidTransitionError(
                saga_id, record.status.value, f"step {new_step}"
            )
        record.data = self.codec.pack(new_data)
        record.current_step = new_step
        record.last_updated_at = self.clock.now()
        await self._write(record, record.status, f"step {new_step}", uow=uow)
        logger.debug("Saga %s advanced to step %d", saga_id, new_step)
        return record

    async def complete(
        self, saga_id: str, *, uow: UnitOfWork | None = None
    ) -> SagaRecord:
        return await self._transition(saga_id, SagaStatus.COMPLETED, uow=uow)

    async def fail(
        self, saga_id: str, error: str, *, uow: UnitOfWork | None = None
    ) -> SagaRecord:
        return await self._transition(saga_id, SagaStatus.FAILED, error=error, uow=uow)

    async def begin_compensation(
        self,
        saga_id: str,
        error: str | None = None,
        *,
        uow: UnitOfWork | None = None,
    ) -> SagaRecord:
        return await self._transition(
            saga_id, SagaStatus.COMPENSATING, error=error, uow=uow
        )

    async def compensated(
        self, saga_id: str, *, uow: UnitOfWork | None = None
    ) -> SagaRecord:
        return await self._transition(saga_id, SagaStatus.COMPENSATED, uow=uow)

    async def _transition(
        self,
        saga_id: str,
        target: SagaStatus,
        *,
        error: str | None = None,
        uow: UnitOfWork | None = None,
    ) -> SagaRecord:
        record = await self.get(saga_id, uow=uow)
        if not can_transition(record.status, target):
            raise InvalidTransitionError(saga_id, record.status.value, target.value)

        now = self.clock.now()
        previous = record.status
        record.status = target
        record.last_updated_at = now
        if error is not None:
            record.last_error = error
        if target in (SagaStatus.COMPLETED, SagaStatus.COMPENSATED):
            record.completed_at = now
        await self._write(record, previous, target.value, uow=uow)

        if target is SagaStatus.FAILED:
            logger.warning("Saga %s failed: %s", saga_id, error)
        else:
            logger.info(
                "Saga %s: %s -> %s", saga_id, previous.value, target.value
            )
        return record

    async def _write(
        self,
        record: SagaRecord,
        expected: SagaStatus,
        attempted: str,
        *,
        uow: UnitOfWork | None,
    ) -> None:
        if await self.store.update(record, uow=uow, expected_status=expected):
            return
        current = await self.get(record.saga_id, uow=uow)
        logger.info(
            "Saga %s changed to %s concurrently; %s rejected",
            record.saga_id,
            current.status.value,
            attempted,
        )
        raise InvalidTransitionError(record.saga_id, current.status.value, attempted)

    # ── Queries ──────────────────────────────────────────────────

    async def get(self, saga_id: str, *, uow: UnitOfWork | None = None) -> SagaRecord:
        """
        Raises:
            SagaNotFoundError: If no saga has this id.
        """
        record = await self.store.get(saga_id, uow=uow)
        if record is None:
            raise SagaNotFoundError(saga_id)
        return record

    async def load_data(self, saga_id: str, *, uow: UnitOfWork | None = None) -> Any:
        record = await self.get(saga_id, uow=uow)
        return self.codec.unpack(record.data)

    async def find_stuck(
        self,
        older_than: timedelta | None = None,
        batch_size: int | None = None,
    ) -> list[StuckSaga]:
        """Running or compensating sagas idle for longer than *older_than*.

        Defaults come from ``SagaOptions``. Results are least recently
        updated first.
        """
        records = await self.store.get_stuck(
            self.options.stuck_saga_threshold if older_than is None else older_than,
            self.options.batch_size if batch_size is None else batch_size,
            self.clock.now(),
        )
        return [
            StuckSaga(
                record=r,
                kind=StuckKind.COMPENSATION_STALLED
                if r.status is SagaStatus.COMPENSATING
                else StuckKind.STALLED,
            )
            for r in records
        ]
