"""
SQLAlchemy implementation of the transactional outbox store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from ..ports.outbox import IOutboxStore, OutboxRecord
from ..primitives.exceptions import DuplicateKeyError
from .base import SQLAlchemyStoreBase
from .models import OutboxRecordModel

if TYPE_CHECKING:
    from datetime import datetime

    from ..ports.unit_of_work import UnitOfWork


def _to_record(m: OutboxRecordModel) -> OutboxRecord:
    return OutboxRecord(
        id=m.id,
        payload_type=m.payload_type,
        payload=m.payload,
        created_at=m.created_at,
        processed_at=m.processed_at,
        last_error=m.last_error,
        retry_count=m.retry_count,
        next_retry_at=m.next_retry_at,
    )


class SQLAlchemyOutboxStore(SQLAlchemyStoreBase, IOutboxStore):
    """
    Outbox store backed by the ``outbox_records`` table.
    """

    async def add(self, record: OutboxRecord, uow: UnitOfWork | None = None) -> None:
        try:
            async with self._session(uow) as session:
                session.add(
                    OutboxRecordModel(
                        id=record.id,
                        payload_type=record.payload_type,
                        payload=record.payload,
                        created_at=record.created_at,
                        processed_at=record.processed_at,
                        last_error=record.last_error,
                        retry_count=record.retry_count,
                        next_retry_at=record.next_retry_at,
                    )
                )
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError("OutboxRecord", record.id) from exc

    async def get(
        self, record_id: str, uow: UnitOfWork | None = None
    ) -> OutboxRecord | None:
        async with self._session(uow) as session:
            model = await session.get(OutboxRecordModel, record_id)
            return _to_record(model) if model else None

    async def get_pending(
        self,
        batch_size: int,
        max_retries: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[OutboxRecord]:
        stmt = (
            select(OutboxRecordModel)
            .where(
                OutboxRecordModel.processed_at.is_(None),
                OutboxRecordModel.retry_count < max_retries,
                or_(
                    OutboxRecordModel.next_retry_at.is_(None),
                    OutboxRecordModel.next_retry_at <= now,
                ),
            )
            .order_by(OutboxRecordModel.created_at)
            .limit(batch_size)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return [_to_record(m) for m in result.scalars().all()]

    async def mark_succeeded(
        self,
        record_id: str,
        processed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = (
            update(OutboxRecordModel)
            .where(OutboxRecordModel.id == record_id)
            .values(processed_at=processed_at, last_error=None, next_retry_at=None)
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
        stmt = (
            update(OutboxRecordModel)
            .where(
                OutboxRecordModel.id == record_id,
                OutboxRecordModel.processed_at.is_(None),
            )
            .values(
                last_error=error,
                retry_count=OutboxRecordModel.retry_count + 1,
                next_retry_at=next_retry_at,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)
