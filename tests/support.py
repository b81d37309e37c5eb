"""Payload types and builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

from pydantic import BaseModel

from cqrs_ddd_reliability.codec import JsonPayloadCodec, PayloadTypeRegistry
from cqrs_ddd_reliability.ports.dispatcher import DispatchResult

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class CreateOrder(BaseModel):
    order_id: str
    amount: int = 0


class OrderPlaced(BaseModel):
    order_id: str


class OrderReceipt(BaseModel):
    order_id: str
    status: str


def make_codec() -> JsonPayloadCodec:
    registry = PayloadTypeRegistry()
    registry.register(CreateOrder)
    registry.register(OrderPlaced)
    registry.register(OrderReceipt)
    return JsonPayloadCodec(registry)


def make_dispatcher(value: Any = None) -> AsyncMock:
    dispatcher = AsyncMock()
    dispatcher.dispatch = AsyncMock(return_value=DispatchResult.ok(value))
    return dispatcher
