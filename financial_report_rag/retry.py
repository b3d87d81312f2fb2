"""
Retry helpers with exponential backoff
"""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, jitter: bool = True) -> float:
    """Delay before retry number ``attempt`` (0-based)"""
    delay = base_delay * (2**attempt)
    if jitter:
        delay += random.uniform(0, 1)
    return delay


def retry_with_backoff(func: Callable[[], T],
                       max_attempts: int = 3,
                       base_delay: float = 1.0,
                       retry_on: Tuple[Type[BaseException], ...] = (Exception, ),
                       jitter: bool = True,
                       sleep: Callable[[float], None] = time.sleep) -> T:
    """Retry function with exponential backoff"""
    for attempt in range(max_attempts):
        try:
            return func()
        except retry_on as e:
            if attempt == max_attempts - 1:
                raise

            delay = backoff_delay(attempt, base_delay, jitter)
            logger.warning(
                f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s..."
            )
            sleep(delay)

    raise RuntimeError(f"Failed after {max_attempts} attempts")


async def async_retry_with_backoff(
        func: Callable[[], Awaitable[T]],
        max_attempts: int = 3,
        base_delay: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception, ),
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> T:
    """Async counterpart of :func:`retry_with_backoff`"""
    for attempt in range(max_attempts):
        try:
            return await func()
        except retry_on as e:
            if attempt == max_attempts - 1:
                raise

            delay = backoff_delay(attempt, base_delay, jitter)
            logger.warning(
                f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

    raise RuntimeError(f"Failed after {max_attempts} attempts")
