"""Retry with exponential backoff for sink deliveries.

Every sink shares this one helper; what differs between sinks is only the
:class:`RetryPolicy` they are configured with.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from gpscapture.errors import RetryExhaustedError

__all__ = ["RetryPolicy", "calculate_delay", "retry_async"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a delivery.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Delay in seconds before the first retry.
        multiplier: Growth factor per retry (delays: 1s, 2s, 4s by default).
        max_delay: Optional cap on a single delay.
        retryable_exceptions: Exception types that trigger a retry; anything
            else propagates immediately.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float | None = None
    retryable_exceptions: tuple[type[Exception], ...] = field(default=(Exception,))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def calculate_delay(
    attempt: int,
    base_delay: float,
    multiplier: float,
    max_delay: float | None = None,
) -> float:
    """Delay before retry *attempt* (0-indexed): ``base_delay * multiplier ** attempt``.

    Example:
        >>> [calculate_delay(n, 1.0, 2.0) for n in range(3)]
        [1.0, 2.0, 4.0]
    """
    delay = base_delay * (multiplier**attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    operation_name: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``func()`` until it succeeds or the policy runs out.

    Args:
        func: Zero-argument coroutine factory, called once per attempt.
        policy: Retry settings; defaults to three attempts starting at 1 s.
        operation_name: Name used in log records.
        sleep: Awaitable used between attempts.

    Raises:
        RetryExhaustedError: When every attempt failed. The last failure is
            chained as ``__cause__`` and kept on ``last_exception``.
    """
    policy = policy or RetryPolicy()
    op_name = operation_name or getattr(func, "__name__", "operation")

    last_exception: Exception | None = None
    for attempt in range(policy.max_attempts):
        try:
            return await func()
        except policy.retryable_exceptions as e:
            last_exception = e

        if attempt == policy.max_attempts - 1:
            break

        delay = calculate_delay(attempt, policy.base_delay, policy.multiplier, policy.max_delay)
        logger.warning(
            "Retry attempt %d/%d for operation '%s' failed with %s: %s. "
            "Retrying in %.2f seconds...",
            attempt + 1,
            policy.max_attempts,
            op_name,
            type(last_exception).__name__,
            last_exception,
            delay,
            extra={
                "operation": op_name,
                "attempt": attempt + 1,
                "delay_seconds": delay,
            },
        )
        await sleep(delay)

    logger.error(
        "Retry exhausted for operation '%s' after %d attempts. Last error: %s",
        op_name,
        policy.max_attempts,
        last_exception,
        extra={
            "operation": op_name,
            "attempts": policy.max_attempts,
            "error_type": type(last_exception).__name__,
        },
    )
    raise RetryExhaustedError(
        f"Operation '{op_name}' failed after {policy.max_attempts} attempts",
        attempts=policy.max_attempts,
        last_exception=last_exception,
        operation_name=op_name,
    ) from last_exception
