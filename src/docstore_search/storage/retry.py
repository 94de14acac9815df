"""Retry policy applied around storage boundary calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import asyncpg

from docstore_search.utils.errors import StorageUnavailableError


logger = logging.getLogger("docstore-search.retry")


# Connection-level failures worth another attempt. Query errors are not retried.
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class RetryPolicy:
    """Bounded retry with exponential backoff for storage calls."""

    def __init__(
        self,
        max_attempts: int = 2,
        backoff: float = 0.5,
        multiplier: float = 2.0,
        retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS
    ):
        """
        Initialize retry policy.

        Args:
            max_attempts: Total attempts including the first one
            backoff: Initial delay between attempts (seconds)
            multiplier: Backoff growth factor
            retry_on: Exception types treated as transient
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.backoff = backoff
        self.multiplier = multiplier
        self.retry_on = retry_on

    async def call(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        before_retry: Optional[Callable[[], Awaitable[None]]] = None,
        **kwargs
    ) -> Any:
        """
        Execute an async callable under the retry policy.

        Args:
            func: Coroutine function to call
            *args: Positional arguments
            before_retry: Optional hook awaited before each retry (e.g. reconnect)
            **kwargs: Keyword arguments

        Returns:
            Function result

        Raises:
            StorageUnavailableError: After max attempts of transient failures
        """
        attempts = 0
        backoff = self.backoff

        while True:
            try:
                return await func(*args, **kwargs)

            except self.retry_on as e:
                attempts += 1
                if attempts >= self.max_attempts:
                    logger.error(f"Storage call failed after {attempts} attempts: {e}")
                    raise StorageUnavailableError(
                        f"Storage unavailable after {attempts} attempts: {e}"
                    ) from e

                logger.warning(
                    f"Storage call failed (attempt {attempts}/{self.max_attempts}), "
                    f"retrying in {backoff}s: {e}"
                )

                if before_retry is not None:
                    try:
                        await before_retry()
                    except self.retry_on as hook_error:
                        logger.warning(f"Reconnect before retry failed: {hook_error}")

                await asyncio.sleep(backoff)
                backoff *= self.multiplier
