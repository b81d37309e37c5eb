"""Saga orchestration state and stuck-saga detection."""

from .coordinator import (
    ALLOWED_TRANSITIONS,
    SagaCoordinator,
    StuckKind,
    StuckSaga,
    can_transition,
)
from .monitor import StuckSagaMonitor

__all__ = [
    "ALLOWED_TRANSITIONS",
    "SagaCoordinator",
    "StuckKind",
    "StuckSaga",
    "StuckSagaMonitor",
    "can_transition",
]
