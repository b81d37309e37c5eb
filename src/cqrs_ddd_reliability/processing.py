"""Helpers shared by the outbox and scheduler processors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .primitives.exceptions import CodecError

if TYPE_CHECKING:
    from .ports.codec import IPayloadCodec
    from .ports.dispatcher import IRequestDispatcher

logger = logging.getLogger("cqrs_ddd.processing")


@dataclass
class BatchResult:
    """Outcome counts for one processed batch."""

    succeeded: int = 0
    failed: int = 0
    dead_lettered: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.dead_lettered


async def decode_and_dispatch(
    codec: IPayloadCodec,
    dispatcher: IRequestDispatcher,
    payload: str,
    type_name: str,
) -> str | None:
    """Deserialize *payload* as *type_name* and dispatch it.

    Returns ``None`` on success or the error text on any failure: codec
    errors, a failed ``DispatchResult`` and raised exceptions all count.
    ``asyncio.CancelledError`` propagates untouched.
    """
    try:
        request = codec.deserialize(payload, type_name)
    except CodecError as exc:
        return str(exc)

    try:
        result = await dispatcher.dispatch(request)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Dispatcher raised for %s", type_name, exc_info=True)
        return f"{type(exc).__name__}: {exc}"

    if result.success:
        return None
    return str(result.failure)
