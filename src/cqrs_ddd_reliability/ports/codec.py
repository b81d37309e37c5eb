"""IPayloadCodec — typed payload (de)serialization by type name."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IPayloadCodec(Protocol):
    """
    Port for turning payloads into stored text and back.

    ``deserialize`` resolves ``type_name`` through an explicit registry and
    raises :class:`~cqrs_ddd_reliability.primitives.exceptions.TypeResolutionError`
    for unknown names or
    :class:`~cqrs_ddd_reliability.primitives.exceptions.DeserializationError`
    for payloads that do not fit the registered type, whatever the decoder
    itself raised.
    """

    def serialize(self, value: Any) -> str:
        """Encode *value* to text."""
        ...

    def deserialize(self, data: str, type_name: str) -> Any:
        """Decode *data* into an instance of the type registered as *type_name*."""
        ...

    def type_name_of(self, value: Any) -> str:
        """Return the type name for *value*, registered or not (informational)."""
        ...

    def registered_name_of(self, value: Any) -> str:
        """Return the registered type name for *value*.

        Raises ``TypeResolutionError`` when the type is not registered.
        """
        ...

    def pack(self, value: Any) -> str:
        """Encode *value* together with its type name (self-describing)."""
        ...

    def unpack(self, data: str) -> Any:
        """Decode text produced by :meth:`pack`."""
        ...
