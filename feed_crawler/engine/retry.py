"""Whole-operation retry for async callables with exponential backoff."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from ..errors import RetryExhaustedError, error_message

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float | None = None) -> float:
    """Delay before the attempt following ``attempt``: ``base * 2**(attempt-1)``
    scaled by a random factor in ``[1, 2)``, capped at ``max_delay``."""

    if base_delay <= 0:
        return 0.0
    delay = base_delay * (2 ** (attempt - 1)) * (1 + random.random())
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    on_retry: Callable[[int, Exception], None] | None = None,
    base_delay: float = 0.0,
    max_delay: float | None = None,
) -> T:
    """Await ``fn()`` until it succeeds or ``attempts`` calls have failed.

    Each attempt calls ``fn`` from scratch. ``on_retry(attempt, error)`` runs
    after every failed attempt that will be followed by another one, then the
    retry sleeps for :func:`backoff_delay`. Once the budget is spent a
    :class:`RetryExhaustedError` chained to the last error is raised.
    """

    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            if attempt >= attempts:
                break
            if on_retry is not None:
                on_retry(attempt, exc)
            delay = backoff_delay(attempt, base_delay, max_delay)
            if delay > 0:
                await asyncio.sleep(delay)
    assert last_error is not None
    raise RetryExhaustedError(
        f"Gave up after {attempts} attempt(s)", attempts, last_error
    ) from last_error


def retry_logger(
    executor: Any, event: str, attempts: int, fields: Mapping[str, Any]
) -> Callable[[int, Exception], None]:
    """Build an ``on_retry`` callback that logs a warning through ``executor``."""

    def _log(attempt: int, error: Exception) -> None:
        executor.warning(
            event,
            attempt=attempt,
            max_attempts=attempts,
            error=error_message(error),
            **fields,
        )

    return _log


__all__ = ["backoff_delay", "retry_async", "retry_logger"]
