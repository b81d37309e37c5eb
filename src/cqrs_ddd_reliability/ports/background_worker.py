"""IBackgroundWorker — lifecycle protocol for the polling processors."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    """
    Start/stop lifecycle shared by background workers.

    Used by: ``OutboxProcessor``, ``SchedulerProcessor``, ``StuckSagaMonitor``.
    """

    async def start(self) -> None:
        """Start the background process."""
        ...

    async def stop(self) -> None:
        """Stop the background process gracefully."""
        ...
