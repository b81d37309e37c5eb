"""IClock — source of the current UTC instant."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


@runtime_checkable
class IClock(Protocol):
    """Clock abstraction so processors and tests can control time."""

    def now(self) -> datetime:
        """Return a timezone-aware UTC timestamp."""
        ...
