"""Tests for the in-memory store implementations and their selection queries."""

from __future__ import annotations

from datetime import timedelta

import pytest
from support import T0

from cqrs_ddd_reliability.adapters.memory import (
    InMemoryInboxStore,
    InMemoryOutboxStore,
    InMemorySagaStore,
    InMemoryScheduledStore,
)
from cqrs_ddd_reliability.ports.inbox import InboxRecord
from cqrs_ddd_reliability.ports.outbox import OutboxRecord
from cqrs_ddd_reliability.ports.saga import SagaRecord, SagaStatus
from cqrs_ddd_reliability.ports.scheduling import ScheduledRecord
from cqrs_ddd_reliability.primitives.exceptions import DuplicateKeyError

# ═══════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════


def _make_outbox(record_id: str, offset_seconds: int = 0) -> OutboxRecord:
    return OutboxRecord(
        id=record_id,
        payload_type="CreateOrder",
        payload='{"order_id": "o-1"}',
        created_at=T0 + timedelta(seconds=offset_seconds),
    )


def _make_inbox(message_id: str = "msg-1") -> InboxRecord:
    return InboxRecord(
        message_id=message_id,
        request_type="CreateOrder",
        received_at=T0,
        expires_at=T0 + timedelta(days=7),
    )


def _make_scheduled(
    record_id: str = "s-1",
    scheduled_at_offset: int = 0,
    *,
    recurring: bool = False,
) -> ScheduledRecord:
    return ScheduledRecord(
        id=record_id,
        request_type="CreateOrder",
        payload="{}",
        scheduled_at=T0 + timedelta(seconds=scheduled_at_offset),
        created_at=T0,
        is_recurring=recurring,
        cron_expression="0 9 * * *" if recurring else None,
    )


# ═══════════════════════════════════════════════════════════════════════
# Outbox
# ═══════════════════════════════════════════════════════════════════════


class TestInMemoryOutboxStore:
    @pytest.mark.asyncio
    async def test_pending_returns_oldest_first_up_to_batch_size(self) -> None:
        store = InMemoryOutboxStore()
        for i in (4, 0, 3, 1, 2):
            await store.add(_make_outbox(f"m{i}", offset_seconds=i))

        pending = await store.get_pending(3, 3, T0 + timedelta(minutes=1))

        assert [r.id for r in pending] == ["m0", "m1", "m2"]

    @pytest.mark.asyncio
    async def test_succeeded_records_leave_the_pending_set(self) -> None:
        store = InMemoryOutboxStore()
        await store.add(_make_outbox("m1"))

        now = T0 + timedelta(seconds=1)
        assert [r.id for r in await store.get_pending(10, 3, now)] == ["m1"]

        await store.mark_succeeded("m1", now)

        assert await store.get_pending(10, 3, now) == []
        stored = await store.get("m1")
        assert stored is not None
        assert stored.processed_at == now

    @pytest.mark.asyncio
    async def test_failed_record_waits_for_its_retry_instant(self) -> None:
        store = InMemoryOutboxStore()
        await store.add(_make_outbox("m1"))

        await store.mark_failed("m1", "boom", T0 + timedelta(seconds=5))

        stored = await store.get("m1")
        assert stored is not None
        assert stored.retry_count == 1
        assert stored.last_error == "boom"
        assert await store.get_pending(10, 3, T0 + timedelta(seconds=2)) == []
        assert len(await store.get_pending(10, 3, T0 + timedelta(seconds=6))) == 1

    @pytest.mark.asyncio
    async def test_dead_lettered_record_is_never_pending(self) -> None:
        store = InMemoryOutboxStore()
        record = _make_outbox("m1")
        record.retry_count = 3
        record.next_retry_at = T0
        await store.add(record)

        assert await store.get_pending(10, 3, T0 + timedelta(days=365)) == []

    @pytest.mark.asyncio
    async def test_duplicate_id_raises(self) -> None:
        store = InMemoryOutboxStore()
        await store.add(_make_outbox("m1"))

        with pytest.raises(DuplicateKeyError):
            await store.add(_make_outbox("m1"))

    @pytest.mark.asyncio
    async def test_marks_on_unknown_ids_are_no_ops(self) -> None:
        store = InMemoryOutboxStore()
        await store.mark_succeeded("missing", T0)
        await store.mark_failed("missing", "boom", None)
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_failure_after_success_is_ignored(self) -> None:
        store = InMemoryOutboxStore()
        await store.add(_make_outbox("m1"))
        await store.mark_succeeded("m1", T0)
        await store.mark_succeeded("m1", T0)

        await store.mark_failed("m1", "late failure", None)

        stored = await store.get("m1")
        assert stored is not None
        assert stored.last_error is None
        assert stored.retry_count == 0

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self) -> None:
        store = InMemoryOutboxStore()
        await store.add(_make_outbox("m1"))

        fetched = await store.get("m1")
        assert fetched is not None
        fetched.retry_count = 99

        again = await store.get("m1")
        assert again is not None
        assert again.retry_count == 0


# ═══════════════════════════════════════════════════════════════════════
# Inbox
# ═══════════════════════════════════════════════════════════════════════


class TestInMemoryInboxStore:
    @pytest.mark.asyncio
    async def test_second_claim_of_same_key_raises(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox())

        with pytest.raises(DuplicateKeyError):
            await store.add(_make_inbox())

    @pytest.mark.asyncio
    async def test_settled_record_expires_after_ttl(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("msg-1"))
        await store.mark_succeeded("msg-1", '"ok"', T0)

        assert await store.get_expired(10, T0 + timedelta(days=6)) == []
        expired = await store.get_expired(10, T0 + timedelta(days=8))
        assert [r.message_id for r in expired] == ["msg-1"]

    @pytest.mark.asyncio
    async def test_unsettled_records_never_expire_or_get_removed(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("msg-1"))
        await store.mark_failed("msg-1", "boom", None)

        assert await store.get_expired(10, T0 + timedelta(days=30)) == []
        assert await store.remove(["msg-1"]) == 0
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_remove_deletes_settled_records(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("msg-1"))
        await store.mark_succeeded("msg-1", None, T0)

        assert await store.remove(["msg-1", "unknown"]) == 1
        assert await store.get("msg-1") is None

    @pytest.mark.asyncio
    async def test_claim_for_retry_wins_once(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("msg-1"))
        await store.mark_failed("msg-1", "boom", None)

        assert await store.claim_for_retry("msg-1") is True
        assert await store.claim_for_retry("msg-1") is False

        stored = await store.get("msg-1")
        assert stored is not None
        assert stored.is_in_flight
        assert stored.retry_count == 1

    @pytest.mark.asyncio
    async def test_claim_for_retry_refuses_in_flight_and_settled(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("in-flight"))
        await store.add(_make_inbox("settled"))
        await store.mark_succeeded("settled", None, T0)

        assert await store.claim_for_retry("in-flight") is False
        assert await store.claim_for_retry("settled") is False
        assert await store.claim_for_retry("unknown") is False

    @pytest.mark.asyncio
    async def test_failure_does_not_overwrite_settled_outcome(self) -> None:
        store = InMemoryInboxStore()
        await store.add(_make_inbox("msg-1"))
        await store.mark_succeeded("msg-1", '"ok"', T0)

        await store.mark_failed("msg-1", "late", None)

        stored = await store.get("msg-1")
        assert stored is not None
        assert stored.is_settled
        assert stored.cached_response == '"ok"'


# ═══════════════════════════════════════════════════════════════════════
# Sagas
# ═══════════════════════════════════════════════════════════════════════


class TestInMemorySagaStore:
    @pytest.mark.asyncio
    async def test_stuck_query_selects_idle_active_sagas(self) -> None:
        store = InMemorySagaStore()
        statuses = {
            "running-old": (SagaStatus.RUNNING, 0),
            "compensating-old": (SagaStatus.COMPENSATING, 10),
            "running-fresh": (SagaStatus.RUNNING, 7150),
            "completed-old": (SagaStatus.COMPLETED, 0),
            "failed-old": (SagaStatus.FAILED, 0),
        }
        for saga_id, (status, offset) in statuses.items():
            await store.add(
                SagaRecord(
                    saga_id=saga_id,
                    saga_type="OrderSaga",
                    data="null",
                    status=status,
                    started_at=T0,
                    last_updated_at=T0 + timedelta(seconds=offset),
                )
            )

        stuck = await store.get_stuck(
            timedelta(hours=1), 10, T0 + timedelta(hours=2)
        )

        assert [r.saga_id for r in stuck] == ["running-old", "compensating-old"]

    @pytest.mark.asyncio
    async def test_update_of_unknown_saga_is_ignored(self) -> None:
        store = InMemorySagaStore()
        ghost = SagaRecord(saga_id="ghost", saga_type="X", data="null")
        assert await store.update(ghost) is False
        assert await store.get("ghost") is None

    @pytest.mark.asyncio
    async def test_update_with_stale_expected_status_is_rejected(self) -> None:
        store = InMemorySagaStore()
        await store.add(SagaRecord(saga_id="s-1", saga_type="X", data="null"))

        completed = SagaRecord(
            saga_id="s-1", saga_type="X", data="null", status=SagaStatus.COMPLETED
        )
        assert await store.update(completed, expected_status=SagaStatus.RUNNING)

        compensating = SagaRecord(
            saga_id="s-1", saga_type="X", data="null", status=SagaStatus.COMPENSATING
        )
        assert not await store.update(
            compensating, expected_status=SagaStatus.RUNNING
        )
        stored = await store.get("s-1")
        assert stored is not None
        assert stored.status is SagaStatus.COMPLETED


# ═══════════════════════════════════════════════════════════════════════
# Scheduled
# ═══════════════════════════════════════════════════════════════════════


class TestInMemoryScheduledStore:
    @pytest.mark.asyncio
    async def test_due_records_in_schedule_order(self) -> None:
        store = InMemoryScheduledStore()
        await store.add(_make_scheduled("later", 30))
        await store.add(_make_scheduled("first", 10))
        await store.add(_make_scheduled("future", 3600))

        due = await store.get_due(10, 3, T0 + timedelta(minutes=1))

        assert [r.id for r in due] == ["first", "later"]

    @pytest.mark.asyncio
    async def test_one_shot_settles_after_success(self) -> None:
        store = InMemoryScheduledStore()
        await store.add(_make_scheduled("s-1"))
        await store.mark_succeeded("s-1", T0)

        assert await store.get_due(10, 3, T0 + timedelta(days=1)) == []

    @pytest.mark.asyncio
    async def test_retry_instant_overrides_schedule(self) -> None:
        store = InMemoryScheduledStore()
        await store.add(_make_scheduled("s-1"))
        await store.mark_failed("s-1", "boom", T0 + timedelta(seconds=5))

        assert await store.get_due(10, 3, T0 + timedelta(seconds=2)) == []
        assert len(await store.get_due(10, 3, T0 + timedelta(seconds=5))) == 1

    @pytest.mark.asyncio
    async def test_dead_lettered_records_are_not_due(self) -> None:
        store = InMemoryScheduledStore()
        record = _make_scheduled("s-1", recurring=True)
        record.retry_count = 3
        await store.add(record)

        assert await store.get_due(10, 3, T0 + timedelta(days=1)) == []

    @pytest.mark.asyncio
    async def test_reschedule_recurring_resets_retry_state(self) -> None:
        store = InMemoryScheduledStore()
        await store.add(_make_scheduled("s-1", recurring=True))
        await store.mark_failed("s-1", "boom", T0 + timedelta(seconds=5))

        next_at = T0 + timedelta(days=1)
        await store.reschedule_recurring("s-1", next_at, T0 + timedelta(seconds=5))

        stored = await store.get("s-1")
        assert stored is not None
        assert stored.scheduled_at == next_at
        assert stored.processed_at is None
        assert stored.retry_count == 0
        assert stored.last_error is None
        assert stored.next_retry_at is None
        assert stored.last_executed_at == T0 + timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        store = InMemoryScheduledStore()
        await store.add(_make_scheduled("s-1"))

        assert await store.cancel("s-1") is True
        assert await store.cancel("s-1") is False
        assert await store.get("s-1") is None

    def test_recurring_record_requires_cron(self) -> None:
        with pytest.raises(ValueError, match="cron_expression"):
            ScheduledRecord(
                request_type="X", payload="{}", scheduled_at=T0, is_recurring=True
            )
