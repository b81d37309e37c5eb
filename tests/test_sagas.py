"""Tests for SagaCoordinator and StuckSagaMonitor."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from support import CreateOrder

from cqrs_ddd_reliability.adapters.memory import InMemorySagaStore
from cqrs_ddd_reliability.clock import FrozenClock
from cqrs_ddd_reliability.codec import JsonPayloadCodec
from cqrs_ddd_reliability.config import SagaOptions
from cqrs_ddd_reliability.ports.saga import SagaRecord, SagaStatus
from cqrs_ddd_reliability.primitives.exceptions import (
    InvalidTransitionError,
    SagaNotFoundError,
)
from cqrs_ddd_reliability.sagas import (
    SagaCoordinator,
    StuckKind,
    StuckSagaMonitor,
    can_transition,
)


class _SlowReadSagaStore(InMemorySagaStore):
    """Yields to the event loop after every read, like a real database."""

    async def get(self, saga_id: str, uow: object = None) -> SagaRecord | None:
        record = await super().get(saga_id, uow)
        await asyncio.sleep(0)
        return record


def _make_coordinator(
    codec: JsonPayloadCodec, clock: FrozenClock, **option_overrides: object
) -> SagaCoordinator:
    return SagaCoordinator(
        InMemorySagaStore(),
        codec,
        options=SagaOptions(**option_overrides),  # type: ignore[arg-type]
        clock=clock,
    )


# ═══════════════════════════════════════════════════════════════════════
# Transition table
# ═══════════════════════════════════════════════════════════════════════


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (SagaStatus.RUNNING, SagaStatus.COMPLETED),
            (SagaStatus.RUNNING, SagaStatus.FAILED),
            (SagaStatus.RUNNING, SagaStatus.COMPENSATING),
            (SagaStatus.COMPENSATING, SagaStatus.COMPENSATED),
        ],
    )
    def test_allowed(self, current: SagaStatus, target: SagaStatus) -> None:
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (SagaStatus.COMPLETED, SagaStatus.RUNNING),
            (SagaStatus.FAILED, SagaStatus.COMPENSATING),
            (SagaStatus.COMPENSATED, SagaStatus.COMPLETED),
            (SagaStatus.COMPENSATING, SagaStatus.FAILED),
            (SagaStatus.COMPENSATING, SagaStatus.COMPLETED),
            (SagaStatus.RUNNING, SagaStatus.COMPENSATED),
        ],
    )
    def test_forbidden(self, current: SagaStatus, target: SagaStatus) -> None:
        assert not can_transition(current, target)


# ═══════════════════════════════════════════════════════════════════════
# Coordinator lifecycle
# ═══════════════════════════════════════════════════════════════════════


class TestSagaCoordinator:
    @pytest.mark.asyncio
    async def test_create_starts_running_at_step_zero(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)

        record = await coordinator.create("OrderSaga", {"order_id": "o-1"})

        stored = await coordinator.get(record.saga_id)
        assert stored.status is SagaStatus.RUNNING
        assert stored.current_step == 0
        assert stored.started_at == stored.last_updated_at == clock.now()
        assert stored.completed_at is None
        assert await coordinator.load_data(record.saga_id) == {"order_id": "o-1"}

    @pytest.mark.asyncio
    async def test_create_with_explicit_id(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga", saga_id="saga-42")
        assert record.saga_id == "saga-42"
        assert await coordinator.load_data("saga-42") is None

    @pytest.mark.asyncio
    async def test_advance_persists_typed_data(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")

        clock.advance(timedelta(minutes=1))
        await coordinator.advance(record.saga_id, CreateOrder(order_id="o-1"), 1)

        stored = await coordinator.get(record.saga_id)
        assert stored.current_step == 1
        assert stored.status is SagaStatus.RUNNING
        assert stored.last_updated_at == clock.now()
        assert await coordinator.load_data(record.saga_id) == CreateOrder(
            order_id="o-1"
        )

    @pytest.mark.asyncio
    async def test_advance_may_step_backwards(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        await coordinator.advance(record.saga_id, None, 3)
        await coordinator.begin_compensation(record.saga_id, "payment declined")

        await coordinator.advance(record.saga_id, None, 2)

        stored = await coordinator.get(record.saga_id)
        assert stored.current_step == 2
        assert stored.status is SagaStatus.COMPENSATING

    @pytest.mark.asyncio
    async def test_advance_rejects_negative_step(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        with pytest.raises(ValueError, match="new_step"):
            await coordinator.advance(record.saga_id, None, -1)

    @pytest.mark.asyncio
    async def test_complete_sets_completed_at(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        clock.advance(timedelta(seconds=30))

        completed = await coordinator.complete(record.saga_id)

        assert completed.status is SagaStatus.COMPLETED
        assert completed.completed_at == clock.now()
        assert completed.is_terminal

    @pytest.mark.asyncio
    async def test_fail_records_error(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")

        failed = await coordinator.fail(record.saga_id, "inventory unavailable")

        assert failed.status is SagaStatus.FAILED
        assert failed.last_error == "inventory unavailable"
        assert failed.completed_at is None

    @pytest.mark.asyncio
    async def test_compensation_path(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")

        compensating = await coordinator.begin_compensation(
            record.saga_id, "payment declined"
        )
        assert compensating.status is SagaStatus.COMPENSATING
        assert compensating.last_error == "payment declined"

        done = await coordinator.compensated(record.saga_id)
        assert done.status is SagaStatus.COMPENSATED
        assert done.completed_at == clock.now()
        assert done.last_error == "payment declined"

    @pytest.mark.asyncio
    async def test_terminal_saga_rejects_further_changes(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        await coordinator.complete(record.saga_id)

        with pytest.raises(InvalidTransitionError):
            await coordinator.fail(record.saga_id, "too late")
        with pytest.raises(InvalidTransitionError):
            await coordinator.begin_compensation(record.saga_id)
        with pytest.raises(InvalidTransitionError):
            await coordinator.advance(record.saga_id, None, 1)

        stored = await coordinator.get(record.saga_id)
        assert stored.status is SagaStatus.COMPLETED
        assert stored.last_error is None

    @pytest.mark.asyncio
    async def test_compensating_saga_cannot_complete(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        await coordinator.begin_compensation(record.saga_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await coordinator.complete(record.saga_id)

        assert exc_info.value.current == "compensating"
        assert exc_info.value.target == "completed"

    @pytest.mark.asyncio
    async def test_concurrent_complete_and_compensation_have_one_winner(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = SagaCoordinator(_SlowReadSagaStore(), codec, clock=clock)
        record = await coordinator.create("OrderSaga")

        completed, compensating = await asyncio.gather(
            coordinator.complete(record.saga_id),
            coordinator.begin_compensation(record.saga_id, "timed out"),
            return_exceptions=True,
        )

        assert isinstance(completed, SagaRecord)
        assert completed.status is SagaStatus.COMPLETED
        assert isinstance(compensating, InvalidTransitionError)
        assert compensating.current == "completed"
        assert compensating.target == "compensating"

        stored = await coordinator.get(record.saga_id)
        assert stored.status is SagaStatus.COMPLETED
        assert stored.completed_at == clock.now()
        assert stored.last_error is None

    @pytest.mark.asyncio
    async def test_advance_cannot_reopen_a_concurrently_completed_saga(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = SagaCoordinator(_SlowReadSagaStore(), codec, clock=clock)
        record = await coordinator.create("OrderSaga")

        _, advanced = await asyncio.gather(
            coordinator.complete(record.saga_id),
            coordinator.advance(record.saga_id, None, 3),
            return_exceptions=True,
        )

        assert isinstance(advanced, InvalidTransitionError)
        stored = await coordinator.get(record.saga_id)
        assert stored.status is SagaStatus.COMPLETED
        assert stored.current_step == 0

    @pytest.mark.asyncio
    async def test_unknown_saga(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        with pytest.raises(SagaNotFoundError):
            await coordinator.get("missing")
        with pytest.raises(SagaNotFoundError):
            await coordinator.complete("missing")


# ═══════════════════════════════════════════════════════════════════════
# Stuck detection
# ═══════════════════════════════════════════════════════════════════════


class TestStuckDetection:
    @pytest.mark.asyncio
    async def test_idle_running_saga_is_stalled(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        await coordinator.advance(record.saga_id, None, 1)

        clock.advance(timedelta(minutes=59))
        assert await coordinator.find_stuck() == []

        clock.advance(timedelta(minutes=2))
        (stuck,) = await coordinator.find_stuck()
        assert stuck.saga_id == record.saga_id
        assert stuck.kind is StuckKind.STALLED
        assert stuck.idle_for(clock.now()) == timedelta(minutes=61)

    @pytest.mark.asyncio
    async def test_idle_compensation_is_reported_separately(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")
        await coordinator.begin_compensation(record.saga_id, "payment declined")

        clock.advance(timedelta(hours=2))
        (stuck,) = await coordinator.find_stuck()

        assert stuck.kind is StuckKind.COMPENSATION_STALLED

    @pytest.mark.asyncio
    async def test_terminal_sagas_are_never_stuck(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        for finish in ("complete", "fail"):
            record = await coordinator.create("OrderSaga")
            if finish == "complete":
                await coordinator.complete(record.saga_id)
            else:
                await coordinator.fail(record.saga_id, "boom")

        clock.advance(timedelta(days=1))
        assert await coordinator.find_stuck() == []

    @pytest.mark.asyncio
    async def test_progress_resets_the_idle_timer(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        record = await coordinator.create("OrderSaga")

        clock.advance(timedelta(minutes=50))
        await coordinator.advance(record.saga_id, None, 1)
        clock.advance(timedelta(minutes=50))

        assert await coordinator.find_stuck() == []

    @pytest.mark.asyncio
    async def test_explicit_threshold_and_batch_size(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        for _ in range(3):
            await coordinator.create("OrderSaga")
            clock.advance(timedelta(seconds=1))

        clock.advance(timedelta(minutes=10))
        stuck = await coordinator.find_stuck(timedelta(minutes=5), batch_size=2)

        assert len(stuck) == 2

    @pytest.mark.asyncio
    async def test_zero_threshold_and_batch_size_are_respected(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        await coordinator.create("OrderSaga")
        clock.advance(timedelta(seconds=1))

        assert len(await coordinator.find_stuck(timedelta(0))) == 1
        assert await coordinator.find_stuck(batch_size=0) == []
        assert await coordinator.find_stuck() == []


class TestStuckSagaMonitor:
    @pytest.mark.asyncio
    async def test_reports_each_stuck_saga(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        first = await coordinator.create("OrderSaga")
        second = await coordinator.create("ShippingSaga")
        clock.advance(timedelta(hours=2))
        on_stuck = AsyncMock()
        monitor = StuckSagaMonitor(coordinator, on_stuck=on_stuck)

        stuck = await monitor.run_once()

        assert {s.saga_id for s in stuck} == {first.saga_id, second.saga_id}
        assert on_stuck.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_the_scan(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock)
        await coordinator.create("OrderSaga")
        await coordinator.create("ShippingSaga")
        clock.advance(timedelta(hours=2))
        on_stuck = AsyncMock(side_effect=[RuntimeError("pager down"), None])
        monitor = StuckSagaMonitor(coordinator, on_stuck=on_stuck)

        stuck = await monitor.run_once()

        assert len(stuck) == 2
        assert on_stuck.await_count == 2

    @pytest.mark.asyncio
    async def test_uses_coordinator_options_by_default(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(
            codec, clock, stuck_saga_threshold=timedelta(minutes=5)
        )
        await coordinator.create("OrderSaga")
        clock.advance(timedelta(minutes=6))
        monitor = StuckSagaMonitor(coordinator)

        assert monitor.options is coordinator.options
        assert len(await monitor.run_once()) == 1

    @pytest.mark.asyncio
    async def test_disabled_monitor_does_not_start(
        self, codec: JsonPayloadCodec, clock: FrozenClock
    ) -> None:
        coordinator = _make_coordinator(codec, clock, enable_monitor=False)
        monitor = StuckSagaMonitor(coordinator)

        await monitor.start()

        assert not monitor.is_running
