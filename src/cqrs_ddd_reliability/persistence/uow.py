"""
SQLAlchemy implementation of the Unit of Work pattern.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from ..ports.unit_of_work import UnitOfWork
from ..primitives.exceptions import SessionManagementError, UnitOfWorkError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work over an ``AsyncSession``.

    Pass it as ``uow=`` to any store call to make the record write part of
    the same transaction as the caller's own changes::

        async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
            uow.session.add(order)
            await outbox.enqueue(OrderPlaced(order_id=order.id), uow=uow)

    Either hand in an existing ``session`` (caller-managed) or a
    ``session_factory`` (the UoW opens and closes its own session).
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if (session is None) == (session_factory is None):
            raise SessionManagementError(
                "Provide exactly one of 'session' or 'session_factory'."
            )
        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = session is None
        super().__init__()

    @property
    def session(self) -> AsyncSession:
        """Get the active session. Raises if session not yet created."""
        if self._session is None:
            raise UnitOfWorkError(
                "Session not yet created. Ensure __aenter__ was called."
            )
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        try:
            if self._owns_session and self._session_factory:
                self._session = self._session_factory()
            if not self.session.in_transaction():
                await self.session.begin()
            return self
        except UnitOfWorkError:
            raise
        except Exception as e:  # noqa: BLE001
            raise SessionManagementError(f"Failed to initialize UoW: {e}") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self._owns_session and self._session is not None:
                try:
                    await self._session.close()
                except Exception as e:  # noqa: BLE001
                    raise SessionManagementError(f"Failed to close session: {e}") from e
                finally:
                    self._session = None

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e
