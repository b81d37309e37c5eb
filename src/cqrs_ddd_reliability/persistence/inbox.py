"""
SQLAlchemy implementation of the inbox store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from ..ports.inbox import IInboxStore, InboxRecord
from ..primitives.exceptions import DuplicateKeyError
from .base import SQLAlchemyStoreBase
from .models import InboxRecordModel

if TYPE_CHECKING:
    from datetime import datetime

    from ..ports.unit_of_work import UnitOfWork


def _to_record(m: InboxRecordModel) -> InboxRecord:
    return InboxRecord(
        message_id=m.message_id,
        request_type=m.request_type,
        received_at=m.received_at,
        processed_at=m.processed_at,
        expires_at=m.expires_at,
        cached_response=m.cached_response,
        last_error=m.last_error,
        retry_count=m.retry_count,
        next_retry_at=m.next_retry_at,
        metadata=m.metadata_,
    )


class SQLAlchemyInboxStore(SQLAlchemyStoreBase, IInboxStore):
    """
    Inbox store backed by the ``inbox_records`` table.

    The primary key on ``message_id`` makes ``add`` an atomic claim, and
    ``claim_for_retry`` is a single conditional ``UPDATE``.
    """

    async def add(self, record: InboxRecord, uow: UnitOfWork | None = None) -> None:
        try:
            async with self._session(uow, savepoint=True) as session:
                session.add(
                    InboxRecordModel(
                        message_id=record.message_id,
                        request_type=record.request_type,
                        received_at=record.received_at,
                        processed_at=record.processed_at,
                        expires_at=record.expires_at,
                        cached_response=record.cached_response,
                        last_error=record.last_error,
                        retry_count=record.retry_count,
                        next_retry_at=record.next_retry_at,
                        metadata_=record.metadata,
                    )
                )
                await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError("InboxRecord", record.message_id) from exc

    async def get(
        self, message_id: str, uow: UnitOfWork | None = None
    ) -> InboxRecord | None:
        async with self._session(uow) as session:
            model = await session.get(InboxRecordModel, message_id)
            return _to_record(model) if model else None

    async def mark_succeeded(
        self,
        message_id: str,
        response: str | None,
        processed_at: datetime,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = (
            update(InboxRecordModel)
            .where(InboxRecordModel.message_id == message_id)
            .values(
                processed_at=processed_at,
                cached_response=response,
                last_error=None,
                next_retry_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)

    async def mark_failed(
        self,
        message_id: str,
        error: str,
        next_retry_at: datetime | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = (
            update(InboxRecordModel)
            .where(
                InboxRecordModel.message_id == message_id,
                InboxRecordModel.processed_at.is_(None),
            )
            .values(
                last_error=error,
                retry_count=InboxRecordModel.retry_count + 1,
                next_retry_at=next_retry_at,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            await session.execute(stmt)

    async def claim_for_retry(
        self, message_id: str, uow: UnitOfWork | None = None
    ) -> bool:
        stmt = (
            update(InboxRecordModel)
            .where(
                InboxRecordModel.message_id == message_id,
                InboxRecordModel.processed_at.is_(None),
                InboxRecordModel.last_error.is_not(None),
            )
            .values(last_error=None)
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return bool(result.rowcount == 1)  # type: ignore[attr-defined]

    async def get_expired(
        self, batch_size: int, now: datetime, uow: UnitOfWork | None = None
    ) -> list[InboxRecord]:
        stmt = (
            select(InboxRecordModel)
            .where(
                InboxRecordModel.expires_at < now,
                InboxRecordModel.processed_at.is_not(None),
            )
            .order_by(InboxRecordModel.expires_at)
            .limit(batch_size)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return [_to_record(m) for m in result.scalars().all()]

    async def remove(
        self, message_ids: list[str], uow: UnitOfWork | None = None
    ) -> int:
        if not message_ids:
            return 0
        stmt = (
            delete(InboxRecordModel)
            .where(
                InboxRecordModel.message_id.in_(message_ids),
                InboxRecordModel.processed_at.is_not(None),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session(uow) as session:
            result = await session.execute(stmt)
            return int(result.rowcount)  # type: ignore[attr-defined]
