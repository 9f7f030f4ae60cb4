from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Final, TypeVar

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Network / timeout failures only. Decoding, revert and schema errors are
# not in this set and propagate on the first attempt.
TRANSIENT_ERRORS: Final[tuple[type[BaseException], ...]] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff: the n-th retry waits base_delay * 2**(n-1) seconds.

    After max_attempts failed attempts the last exception is re-raised as is.
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            sleep=self.sleep,
            reraise=True,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        return await self.retrying()(fn, *args, **kwargs)
