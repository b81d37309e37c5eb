"""Adapters — dispatcher bridge and in-memory stores."""

from .dispatcher import CallableDispatcher
from .memory import (
    InMemoryInboxStore,
    InMemoryOutboxStore,
    InMemorySagaStore,
    InMemoryScheduledStore,
)

__all__ = [
    "CallableDispatcher",
    "InMemoryInboxStore",
    "InMemoryOutboxStore",
    "InMemorySagaStore",
    "InMemoryScheduledStore",
]
