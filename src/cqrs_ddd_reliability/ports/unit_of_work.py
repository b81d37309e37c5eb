"""UnitOfWork — transaction boundary shared by stores and application code."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("cqrs_ddd.uow")


class UnitOfWork(ABC):
    """
    Base class for Unit of Work implementations.

    Store methods accept an optional ``uow``. When one is given, the record
    write joins the caller's transaction, so an outbox or scheduled record
    is committed atomically with the business write that produced it.

    Post-commit hooks registered with :meth:`on_commit` run only after a
    successful commit (e.g. to wake the outbox processor).
    """

    def __init__(self) -> None:
        self._on_commit_hooks: deque[Callable[[], Awaitable[Any]]] = deque()

    def on_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register an async callback to run after a successful commit."""
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        """Run and drain all registered ``on_commit`` hooks."""
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            try:
                await callback()
            except Exception as exc:  # noqa: BLE001
                logger.error("Error in on_commit hook: %s", exc, exc_info=True)

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        # Commit strictly before hooks so hooks observe committed data.
        if exc_type is None:
            await self.commit()
            await self.trigger_commit_hooks()
        else:
            self._on_commit_hooks.clear()
            await self.rollback()
