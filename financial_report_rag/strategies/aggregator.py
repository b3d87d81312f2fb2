"""
Streaming aggregator

Drains a strategy's fragment stream into one string. A stream that is rejected
with a rate limit is reopened through its factory after an exponential delay.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable

from ..exceptions import UpstreamRateLimited
from ..retry import async_retry_with_backoff

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], AsyncIterator[str]]


class StreamAggregator:
    """Collects complete model output from a restartable stream factory"""

    def __init__(self,
                 max_retries: int = 3,
                 base_delay: float = 2.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def collect(self, open_stream: StreamFactory, label: str = "") -> str:
        """
        Concatenate every fragment of a stream

        Args:
            open_stream: Zero-argument callable returning a fresh fragment
                iterator. Streams are single-pass, so each retry opens a new one.
            label: Name used in log messages

        Returns:
            The full model output

        Raises:
            UpstreamRateLimited: Still rate limited after ``max_retries`` retries
            UpstreamError: Any non-retriable backend failure
        """

        async def drain() -> str:
            fragments = []
            async for fragment in open_stream():
                fragments.append(fragment)
            return "".join(fragments)

        text = await async_retry_with_backoff(drain,
                                              max_attempts=self.max_retries + 1,
                                              base_delay=self.base_delay,
                                              retry_on=(UpstreamRateLimited, ),
                                              jitter=False,
                                              sleep=self._sleep)
        logger.info(f"Collected {len(text)} characters from {label or 'stream'}")
        return text
