"""
SQLAlchemy implementation of the scheduled-record store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError

from ..ports.scheduling import IScheduledStore, ScheduledRecord
from ..primitives.exceptions import DuplicateKeyError
from .base import SQLAlchemyStoreBase
from .models import ScheduledRecordModel

if TYPE_CHECKING:
    from datetime import datetime

    from ..ports.unit_of_work import UnitOfWork


def _to_record(m: ScheduledRecordModel) -> ScheduledRecord:
    return ScheduledRecord(
        id=m.id,
        request_type=m.request_type,
        payload=m.payload,
        scheduled_at=m.scheduled_at,
        created_at=m.created_at,
        processed_at=m.processed_at,
        last_executed_at=m.last_executed_at,
        last_error=m.last_error,
        retry_count=m.retry_count,
        next_retry_at=m.next_retry_at,
        is_recurring=m.is_recurring,
        cron_expression=m.cron_expression,
    )


class SQLAlchemyScheduledStore(SQLAlchemyStoreBase, IScheduledStore):
    """
    Scheduled-record store backed by the ``scheduled_records`` table.
    """

    async def add(
        self, record: ScheduledRecord, uow: UnitOfWork | None = None
    ) -> None:
        try:
            async with self._session(uow) as session:
                session.add(
                    ScheduledRecordModel(
                        id=record.id,
                        request_type=record.request_type,
                        payload=record.payload,
                        scheduled_at=record.scheduled_at,
                        created_at=record.created_at,
                        processed_at=record.processed_at,
                        last_executed_at=record.last_executed_at,
                        last_error=record.last_error,
                        retry_count=record.retry_count,
                        next_retry_at=record.next_retry_at,
                        is_recurring=record.is_recurring,
                        cron_expression=record.cron_expression,
                    )
                )
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError("ScheduledRecord", record.id) from exc

    async def get(
        self, record_id: str, uow: UnitOfWork | None = None
    ) -> ScheduledRecord | None:
        async with self._session(uow) as session:
            model = await session.get(ScheduledRecordModel, record_id)
            return _to_record(model) if model else None

    async def get_due(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[ScheduledRecord]:
        m = ScheduledRecordModel
        stmt = (
            select(m)
            .where(
                or_(m.processed_at.is_(None), m.is_recurring.is_(True)),
                m.retry_count < max_retries,
                or_(
                    m.next_retry_at <= now,
                    and_(m.next_retry_at.is_(None), m.scheduled_at <= now),
                ),
            )
            .order_by(m.scheduled_at)
            .limit(batch_size)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return [_to_record(r) for r in result.scalars().all()]

    async def mark_succeeded(
        self,
        record_id: str,
        executed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = (
            update(ScheduledRecordModel)
            .where(ScheduledRecordModel.id == record_id)
            .values(
                processed_at=executed_at,
                last_executed_at=executed_at,
                last_error=None,
                next_retry_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)

    async def mark_failed(
        self,
        record_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        m = ScheduledRecordModel
        stmt = (
            update(m)
            .where(
                m.id == record_id,
                or_(m.processed_at.is_(None), m.is_recurring.is_(True)),
            )
            .values(
                last_error=error,
                retry_count=m.retry_count + 1,
                next_retry_at=next_retry_at,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)

    async def reschedule_recurring(
        self,
        record_id: str,
        next_scheduled_at: datetime,
        executed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = (
            update(ScheduledRecordModel)
            .where(ScheduledRecordModel.id == record_id)
            .values(
                scheduled_at=next_scheduled_at,
                last_executed_at=executed_at,
                processed_at=None,
                last_error=None,
                retry_count=0,
                next_retry_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)

    async def cancel(self, record_id: str, uow: UnitOfWork | None = None) -> bool:
        stmt = (
            delete(ScheduledRecordModel)
            .where(ScheduledRecordModel.id == record_id)
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return bool(result.rowcount)  # type: ignore[attr-defined]
