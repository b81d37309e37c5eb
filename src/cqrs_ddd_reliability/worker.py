"""PeriodicWorker — reactive polling loop shared by the background processors."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Generic, TypeVar

from .ports.background_worker import IBackgroundWorker

logger = logging.getLogger("cqrs_ddd.worker")

R = TypeVar("R")


class PeriodicWorker(IBackgroundWorker, ABC, Generic[R]):
    """Runs :meth:`_process` once per interval until stopped.

    Uses trigger + polling fallback: :meth:`trigger` wakes the loop
    immediately (e.g. after an outbox commit), otherwise it runs every
    ``interval``. A failing cycle is logged and the loop keeps running.

    Subclasses implement ``_process``; ``run_once`` exposes a single cycle
    for tests and manual drains.
    """

    def __init__(self, interval: timedelta, *, enabled: bool = True) -> None:
        self._interval = interval.total_seconds()
        self._enabled = enabled
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._trigger = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        """Wake the worker immediately."""
        self._trigger.set()

    async def start(self) -> None:
        name = type(self).__name__
        if not self._enabled:
            logger.info("%s is disabled; not starting", name)
            return
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=name)
        logger.info("%s started (interval=%.1fs)", name, self._interval)

    async def stop(self) -> None:
        self._running = False
        self._trigger.set()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._task, timeout=5.0)
            self._task = None
        logger.info("%s stopped", type(self).__name__)

    async def run_once(self) -> R:
        """Execute a single processing cycle (useful in tests)."""
        return await self._process()

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self._process()
            except Exception:
                logger.exception("%s cycle failed", type(self).__name__)
            if not self._running:
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._trigger.wait(), timeout=self._interval)
            self._trigger.clear()

    @abstractmethod
    async def _process(self) -> R: ...
