"""Column types shared by the reliability tables."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON, DateTime, TypeDecorator

from ..clock import ensure_utc
from ..codec import json_default


class JSONType(TypeDecorator[dict[str, Any]]):
    """
    JSON document column for free-form record context (inbox ``metadata``).

    JSONB on PostgreSQL, plain JSON elsewhere. Values the payload codec can
    encode (datetimes, pydantic models, dataclasses, sets) are normalised to
    JSON primitives on bind, so they read back as strings, dicts and lists.
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(
        self,
        value: dict[str, Any] | None,
        dialect: Any,  # noqa: ARG002
    ) -> Any:
        if value is None:
            return None
        return json.loads(json.dumps(value, default=json_default))


class UTCDateTime(TypeDecorator[datetime]):
    """
    Timezone-aware UTC datetime on every dialect.
    SQLite has no timezone support, so values are stored as naive UTC there
    and re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> Any:
        if value is None:
            return None
        value = ensure_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> datetime | None:  # noqa: ARG002
        if value is None:
            return None
        return ensure_utc(value)
