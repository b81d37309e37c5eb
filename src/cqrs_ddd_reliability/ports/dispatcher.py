"""IRequestDispatcher — boundary to application logic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Protocol, runtime_checkable

from typing_extensions import TypeVar

T = TypeVar("T", default=Any)


@dataclass(frozen=True)
class DispatchFailure:
    """Structured business failure returned (not raised) by a dispatcher."""

    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass(frozen=True)
class DispatchResult(Generic[T]):
    """Outcome of one dispatch: a value on success or a :class:`DispatchFailure`."""

    value: T | None = None
    failure: DispatchFailure | None = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, value: T | None = None) -> DispatchResult[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, code: str, message: str) -> DispatchResult[T]:
        return cls(failure=DispatchFailure(code=code, message=message))


@runtime_checkable
class IRequestDispatcher(Protocol):
    """
    Executes application logic for a materialized command or event.

    Expected business failures come back as ``DispatchResult.fail(...)``.
    Programmer or infrastructure errors may be raised; the engines treat
    them as retryable failures. Cancellation arrives as
    ``asyncio.CancelledError`` through the awaiting task.
    """

    async def dispatch(self, payload: Any) -> DispatchResult[Any]:
        """Dispatch *payload* and report the outcome."""
        ...
