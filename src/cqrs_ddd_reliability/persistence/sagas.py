"""
SQLAlchemy implementation of the saga store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..ports.saga import ACTIVE_STATUSES, ISagaStore, SagaRecord, SagaStatus
from ..primitives.exceptions import DuplicateKeyError
from .base import SQLAlchemyStoreBase
from .models import SagaRecordModel

if TYPE_CHECKING:
    from datetime import datetime, timedelta

    from ..ports.unit_of_work import UnitOfWork


def _to_record(m: SagaRecordModel) -> SagaRecord:
    return SagaRecord(
        saga_id=m.saga_id,
        saga_type=m.saga_type,
        data=m.data,
        status=m.status,
        current_step=m.current_step,
        started_at=m.started_at,
        last_updated_at=m.last_updated_at,
        completed_at=m.completed_at,
        last_error=m.last_error,
    )


class SQLAlchemySagaStore(SQLAlchemyStoreBase, ISagaStore):
    """
    Saga store backed by the ``saga_records`` table.
    """

    async def add(self, record: SagaRecord, uow: UnitOfWork | None = None) -> None:
        try:
            async with self._session(uow) as session:
                session.add(
                    SagaRecordModel(
                        saga_id=record.saga_id,
                        saga_type=record.saga_type,
                        data=record.data,
                        status=record.status,
                        current_step=record.current_step,
                        started_at=record.started_at,
                        last_updated_at=record.last_updated_at,
                        completed_at=record.completed_at,
                        last_error=record.last_error,
                    )
                )
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError("SagaRecord", record.saga_id) from exc

    async def get(
        self, saga_id: str, uow: UnitOfWork | None = None
    ) -> SagaRecord | None:
        async with self._session(uow) as session:
            model = await session.get(SagaRecordModel, saga_id)
            return _to_record(model) if model else None

    async def update(
        self,
        record: SagaRecord,
        uow: UnitOfWork | None = None,
        *,
        expected_status: SagaStatus | None = None,
    ) -> bool:
        stmt = update(SagaRecordModel).where(
            SagaRecordModel.saga_id == record.saga_id
        )
        if expected_status is not None:
            stmt = stmt.where(SagaRecordModel.status == expected_status)
        stmt = (
            stmt.values(
                data=record.data,
                status=record.status,
                current_step=record.current_step,
                last_updated_at=record.last_updated_at,
                completed_at=record.completed_at,
                last_error=record.last_error,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def get_stuck(
        self,
        older_than: timedelta,
        batch_size: int,
        now: datetime,
        uow: UnitOfWork | None = None,
    ) -> list[SagaRecord]:
        stmt = (
            select(SagaRecordModel)
            .where(
                SagaRecordModel.status.in_(list(ACTIVE_STATUSES)),
                SagaRecordModel.last_updated_at < now - older_than,
            )
            .order_by(SagaRecordModel.last_updated_at)
            .limit(batch_size)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return [_to_record(m) for m in result.scalars().all()]
