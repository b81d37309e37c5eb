"""RetryPolicy — exponential backoff and dead-letter classification."""

from __future__ import annotations

from datetime import datetime, timedelta


def is_dead_lettered(
    retry_count: int, max_retries: int, *, settled: bool = False
) -> bool:
    """Return True if a record has used up its retries without settling."""
    return retry_count >= max_retries and not settled


class RetryPolicy:
    """Exponential backoff shared by the outbox and scheduler processors.

    ``attempt`` is always the retry count *after* counting the current
    failure, so the first failure waits ``base_delay``, the second twice
    that, and so on. No jitter: retry instants are exact.
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        base_delay: timedelta = timedelta(seconds=5),
    ) -> None:
        """Configure retry behavior.

        Args:
            max_retries: Failed attempts after which a record is dead-lettered.
            base_delay: Delay before the first retry.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay < timedelta(0):
            raise ValueError("base_delay must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay

    def delay_for_attempt(self, attempt: int) -> timedelta:
        """Return ``base_delay * 2^(attempt-1)`` for a 1-based attempt."""
        if attempt < 1:
            return timedelta(0)
        return self.base_delay * (2 ** (attempt - 1))

    def next_retry_at(self, attempt: int, now: datetime) -> datetime:
        return now + self.delay_for_attempt(attempt)

    def should_retry(self, attempt: int) -> bool:
        """Return True if a record that has failed *attempt* times may run again."""
        return attempt < self.max_retries

    def is_dead_lettered(self, retry_count: int, *, settled: bool = False) -> bool:
        return is_dead_lettered(retry_count, self.max_retries, settled=settled)

    def failure_outcome(
        self, retry_count: int, now: datetime
    ) -> tuple[int, datetime | None]:
        """Count one more failure for a record currently at *retry_count*.

        Returns ``(attempt, next_retry_at)``; ``next_retry_at`` is ``None``
        when the record is now dead-lettered.
        """
        attempt = retry_count + 1
        if self.should_retry(attempt):
            return attempt, self.next_retry_at(attempt, now)
        return attempt, None
