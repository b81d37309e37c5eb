"""Cron helpers built on croniter."""

from __future__ import annotations

from datetime import datetime

from croniter import CroniterError, croniter

from ..clock import ensure_utc
from ..primitives.exceptions import InvalidCronExpressionError


def validate_cron(expression: str | None) -> str:
    """Return *expression* stripped, or raise :class:`InvalidCronExpressionError`."""
    if not expression or not expression.strip():
        raise InvalidCronExpressionError(expression, "expression is empty")
    expression = expression.strip()
    if not croniter.is_valid(expression):
        raise InvalidCronExpressionError(expression)
    return expression


def next_occurrence(expression: str | None, after: datetime) -> datetime:
    """First occurrence of *expression* strictly after *after*, in UTC."""
    expression = validate_cron(expression)
    try:
        nxt = croniter(expression, ensure_utc(after)).get_next(datetime)
    except (CroniterError, ValueError, KeyError) as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc
    return ensure_utc(nxt)
