import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base_s: float) -> Callable[[int], float]:
    """Delay after the given (1-based) failed attempt: base * attempt."""
    return lambda attempt: base_s * attempt


async def with_retries(
    op: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff: Callable[[int], float],
    retry_on: tuple[type[BaseException], ...],
    label: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run op up to `attempts` times, sleeping backoff(n) after failure n.

    Re-raises the last error once the budget is spent. Errors not listed in
    `retry_on` propagate on the first occurrence.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await op()
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"{label} failed on attempt {attempt}/{attempts}: {e}")
                raise
            delay = backoff(attempt)
            logger.warning(f"{label} failed on attempt {attempt}/{attempts}: {e}; retrying in {delay:.1f}s")
            await sleep(delay)
    raise ValueError("attempts must be >= 1")
