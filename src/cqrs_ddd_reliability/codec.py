"""PayloadTypeRegistry and JsonPayloadCodec — typed payloads stored as JSON text."""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from .primitives.exceptions import (
    DeserializationError,
    SerializationError,
    TypeResolutionError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    Decoder = Callable[[Any], Any]


def json_default(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, set | frozenset):
        return list(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _default_decoder(payload_class: type) -> Decoder:
    if issubclass(payload_class, BaseModel):
        return payload_class.model_validate
    if dataclasses.is_dataclass(payload_class):
        return lambda data: payload_class(**data)
    return payload_class


class PayloadTypeRegistry:
    """Registry mapping ``type_name: str`` to a payload class and its decoder.

    **Explicit registration** is required; an unknown name is a declared
    error path (:class:`TypeResolutionError`) rather than a reflection lookup.
    Create instances per application context for isolation.

    Usage::

        registry = PayloadTypeRegistry()
        registry.register(CreateOrder)
        registry.register(LegacyEvent, "orders.LegacyEvent", decoder=upcast_legacy)
    """

    def __init__(self) -> None:
        self._decoders: dict[str, Decoder] = {}
        self._names: dict[type, str] = {}

    def register(
        self,
        payload_class: type,
        name: str | None = None,
        *,
        decoder: Decoder | None = None,
    ) -> str:
        """Register *payload_class* under *name* (defaults to the class name).

        Pydantic models decode via ``model_validate``, dataclasses via keyword
        construction, anything else by calling the class with the raw data.
        """
        type_name = name or payload_class.__name__
        self._decoders[type_name] = decoder or _default_decoder(payload_class)
        self._names[payload_class] = type_name
        return type_name

    def name_for(self, payload_class: type) -> str | None:
        """Return the registered name for *payload_class*, walking the MRO."""
        for klass in payload_class.__mro__:
            if klass in self._names:
                return self._names[klass]
        return None

    def resolve(self, type_name: str) -> Decoder:
        """Return the decoder for *type_name*.

        Raises:
            TypeResolutionError: If *type_name* is not registered.
        """
        try:
            return self._decoders[type_name]
        except KeyError:
            raise TypeResolutionError(type_name) from None

    def has(self, type_name: str) -> bool:
        return type_name in self._decoders

    def list_registered(self) -> list[str]:
        return list(self._decoders.keys())

    def clear(self) -> None:
        """Remove all registrations (testing utility)."""
        self._decoders.clear()
        self._names.clear()


class JsonPayloadCodec:
    """JSON ``IPayloadCodec`` backed by a :class:`PayloadTypeRegistry`.

    Pydantic models are dumped with ``model_dump(mode="json")``; dataclasses,
    datetimes and plain JSON values are also accepted. ``pack`` wraps a value
    in a ``{"type": ..., "payload": ...}`` envelope so it can be decoded
    without knowing its type up front (inbox cached responses).
    """

    def __init__(self, registry: PayloadTypeRegistry | None = None) -> None:
        self.registry = registry or PayloadTypeRegistry()

    def serialize(self, value: Any) -> str:
        try:
            return json.dumps(self._to_primitive(value), default=json_default)
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def deserialize(self, data: str, type_name: str) -> Any:
        decoder = self.registry.resolve(type_name)
        try:
            return decoder(json.loads(data))
        except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
            raise DeserializationError(type_name, str(e)) from e
        except Exception as e:
            # custom decoders and upcasters may raise anything
            raise DeserializationError(type_name, f"{type(e).__name__}: {e}") from e

    def type_name_of(self, value: Any) -> str:
        """Registered name of ``type(value)``, else its ``module.qualname``."""
        cls = type(value)
        return self.registry.name_for(cls) or f"{cls.__module__}.{cls.__qualname__}"

    def registered_name_of(self, value: Any) -> str:
        """Registered name of ``type(value)``.

        Raises:
            TypeResolutionError: If the class was never registered, since a
                stored payload of that type could not be decoded later.
        """
        cls = type(value)
        type_name = self.registry.name_for(cls)
        if type_name is None:
            raise TypeResolutionError(f"{cls.__module__}.{cls.__qualname__}")
        return type_name

    def pack(self, value: Any) -> str:
        type_name = None
        if value is not None:
            type_name = self.registry.name_for(type(value))
        try:
            return json.dumps(
                {"type": type_name, "payload": self._to_primitive(value)},
                default=json_default,
            )
        except (TypeError, ValueError) as e:
            raise SerializationError(str(e)) from e

    def unpack(self, data: str) -> Any:
        try:
            envelope = json.loads(data)
            type_name = envelope["type"]
            payload = envelope["payload"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise DeserializationError("<envelope>", str(e)) from e
        if type_name is None:
            return payload
        decoder = self.registry.resolve(type_name)
        try:
            return decoder(payload)
        except (ValidationError, TypeError, ValueError) as e:
            raise DeserializationError(type_name, str(e)) from e
        except Exception as e:
            raise DeserializationError(type_name, f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _to_primitive(value: Any) -> Any:
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json")
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return dataclasses.asdict(value)
        return value
