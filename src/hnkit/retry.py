"""Bounded exponential-backoff retry for network operations.

Only transient transport failures are retried. HTTP status errors, decode
failures and everything else propagate on the first occurrence.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import structlog

from hnkit.errors import TransportError, TransportErrorKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

log = structlog.get_logger()

DEFAULT_RETRYABLE_ERROR_KINDS: frozenset[TransportErrorKind] = frozenset(
    {
        TransportErrorKind.TIMEOUT,
        TransportErrorKind.CONNECTION_LOST,
        TransportErrorKind.NOT_CONNECTED,
    }
)


@dataclass(frozen=True)
class RetryConfiguration:
    max_attempts: int = 3
    base_delay: float = 0.5
    retryable_error_kinds: frozenset[TransportErrorKind] = field(
        default=DEFAULT_RETRYABLE_ERROR_KINDS
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")


class RetryPolicy:
    """Runs an async operation up to ``max_attempts`` times."""

    def __init__(self, configuration: RetryConfiguration | None = None) -> None:
        self.configuration = configuration or RetryConfiguration()

    def is_retryable(self, error: BaseException) -> bool:
        return (
            isinstance(error, TransportError)
            and error.kind in self.configuration.retryable_error_kinds
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows failed attempt ``attempt`` (0-based)."""
        return self.configuration.base_delay * (2**attempt)

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        max_attempts = self.configuration.max_attempts
        for attempt in range(max_attempts):
            try:
                return await operation()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if attempt == max_attempts - 1:
                    log.warning(
                        "retry_exhausted",
                        operation=label,
                        attempts=max_attempts,
                        error=str(exc),
                    )
                    raise
                delay = self.delay_for(attempt)
                log.warning(
                    "retry_scheduled",
                    operation=label,
                    attempt=attempt + 1,
                    delay=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)

        # Unreachable but satisfies the type checker
        raise RuntimeError("retry loop exited without a result")
