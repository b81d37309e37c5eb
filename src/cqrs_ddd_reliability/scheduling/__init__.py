"""Scheduled and recurring command dispatch."""

from .cron import next_occurrence, validate_cron
from .processor import SchedulerProcessor
from .scheduler import MessageScheduler

__all__ = [
    "MessageScheduler",
    "SchedulerProcessor",
    "next_occurrence",
    "validate_cron",
]
