"""Transactional outbox: writer and background processor."""

from .processor import OutboxProcessor
from .writer import Outbox

__all__ = ["Outbox", "OutboxProcessor"]
