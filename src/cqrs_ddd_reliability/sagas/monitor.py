"""StuckSagaMonitor — periodic scan for sagas that stopped making progress."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..config import SagaOptions
from ..worker import PeriodicWorker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .coordinator import SagaCoordinator, StuckSaga

logger = logging.getLogger("cqrs_ddd.sagas")


class StuckSagaMonitor(PeriodicWorker["list[StuckSaga]"]):
    """Reports stuck sagas every ``scan_interval``.

    Detection and classification only: what to do about a stuck saga
    (alert, resume, compensate) belongs to ``on_stuck``. A failing
    callback is logged and does not stop the remaining candidates.
    """

    def __init__(
        self,
        coordinator: SagaCoordinator,
        *,
        options: SagaOptions | None = None,
        on_stuck: Callable[[StuckSaga], Awaitable[Any]] | None = None,
    ) -> None:
        self.options = options or coordinator.options
        super().__init__(
            self.options.scan_interval, enabled=self.options.enable_monitor
        )
        self.coordinator = coordinator
        self._on_stuck = on_stuck

    async def _process(self) -> list[StuckSaga]:
        stuck = await self.coordinator.find_stuck(
            self.options.stuck_saga_threshold, self.options.batch_size
        )
        for candidate in stuck:
            logger.warning(
                "Saga %s (%s) is %s since %s",
                candidate.saga_id,
                candidate.record.saga_type,
                candidate.kind.value,
                candidate.record.last_updated_at.isoformat(),
            )
            if self._on_stuck is None:
                continue
            try:
                await self._on_stuck(candidate)
            except Exception:
                logger.exception("Stuck-saga handler failed for %s", candidate.saga_id)
        return stuck
