"""CallableDispatcher — adapts a mediator ``send`` function to IRequestDispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..ports.dispatcher import DispatchResult
from ..primitives.exceptions import DispatchError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class CallableDispatcher:
    """Wraps an async callable such as ``mediator.send``.

    A ``DispatchResult`` returned by the callable is passed through; any
    other return value counts as success and becomes ``DispatchResult.ok``.
    A raised :class:`DispatchError` becomes a failed result with its code
    (default ``"dispatch_error"``); other exceptions propagate to the caller.
    """

    def __init__(self, send_fn: Callable[[Any], Awaitable[Any]]) -> None:
        self._send_fn = send_fn

    async def dispatch(self, payload: Any) -> DispatchResult[Any]:
        try:
            result = await self._send_fn(payload)
        except DispatchError as exc:
            return DispatchResult.fail(exc.code or "dispatch_error", str(exc))
        if isinstance(result, DispatchResult):
            return result
        return DispatchResult.ok(result)
