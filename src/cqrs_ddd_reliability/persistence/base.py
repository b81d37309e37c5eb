"""Session handling shared by the SQLAlchemy stores."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from ..ports.unit_of_work import UnitOfWork
    from .uow import SQLAlchemyUnitOfWork


class SQLAlchemyStoreBase:
    """
    Base for stores that either join a caller's ``SQLAlchemyUnitOfWork`` or
    run each call in a short transaction of their own.

    Records must be converted to dataclasses inside the ``_session`` block.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(
        self, uow: UnitOfWork | None, *, savepoint: bool = False
    ) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to *uow*, or a fresh self-committing one.

        With ``savepoint=True`` a failing statement inside a caller's
        transaction only rolls back to the savepoint, so the caller can
        carry on (used for duplicate-key inserts).
        """
        if uow is not None:
            session = cast("SQLAlchemyUnitOfWork", uow).session
            if savepoint:
                async with session.begin_nested():
                    yield session
            else:
                yield session
            return

        async with self.session_factory() as session, session.begin():
            yield session
