"""In-memory store implementations for testing."""

from .inbox import InMemoryInboxStore
from .outbox import InMemoryOutboxStore
from .sagas import InMemorySagaStore
from .scheduling import InMemoryScheduledStore

__all__ = [
    "InMemoryInboxStore",
    "InMemoryOutboxStore",
    "InMemorySagaStore",
    "InMemoryScheduledStore",
]
