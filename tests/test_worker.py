"""Tests for the PeriodicWorker lifecycle."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from cqrs_ddd_reliability.ports.background_worker import IBackgroundWorker
from cqrs_ddd_reliability.worker import PeriodicWorker


class _CountingWorker(PeriodicWorker[int]):
    def __init__(self, *, enabled: bool = True, fail_first: bool = False) -> None:
        super().__init__(timedelta(hours=1), enabled=enabled)
        self.calls = 0
        self.ran = asyncio.Event()
        self._fail_first = fail_first

    async def _process(self) -> int:
        self.calls += 1
        self.ran.set()
        if self._fail_first and self.calls == 1:
            raise RuntimeError("store unavailable")
        return self.calls


async def _wait_for_cycle(worker: _CountingWorker) -> None:
    await asyncio.wait_for(worker.ran.wait(), timeout=1.0)
    worker.ran.clear()


class TestPeriodicWorker:
    def test_is_a_background_worker(self) -> None:
        assert isinstance(_CountingWorker(), IBackgroundWorker)

    @pytest.mark.asyncio
    async def test_runs_immediately_and_on_trigger(self) -> None:
        worker = _CountingWorker()
        await worker.start()
        try:
            await _wait_for_cycle(worker)
            assert worker.calls == 1

            worker.trigger()
            await _wait_for_cycle(worker)
            assert worker.calls == 2
        finally:
            await worker.stop()

        assert not worker.is_running

    @pytest.mark.asyncio
    async def test_disabled_worker_does_not_start(self) -> None:
        worker = _CountingWorker(enabled=False)
        await worker.start()

        assert not worker.is_running
        assert worker.calls == 0

    @pytest.mark.asyncio
    async def test_failing_cycle_does_not_stop_the_loop(self) -> None:
        worker = _CountingWorker(fail_first=True)
        await worker.start()
        try:
            await _wait_for_cycle(worker)
            worker.trigger()
            await _wait_for_cycle(worker)
            assert worker.calls == 2
            assert worker.is_running
        finally:
            await worker.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        worker = _CountingWorker()
        await worker.start()
        await worker.start()
        try:
            await _wait_for_cycle(worker)
            assert worker.calls == 1
        finally:
            await worker.stop()

    @pytest.mark.asyncio
    async def test_run_once_returns_cycle_result(self) -> None:
        worker = _CountingWorker()
        assert await worker.run_once() == 1
