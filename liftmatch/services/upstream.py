"""Guarded calls to the lookup and history services.

Every upstream call gets a per-attempt timeout and a bounded number of
attempts. Connection errors are retried with exponential backoff; anything
else fails fast. Failures surface as UpstreamUnavailableError so the
resolver can skip the current tier.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from liftmatch.config import Settings, settings
from liftmatch.errors import UnknownDivisionError, UpstreamUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")

# Exceptions that are retriable (transient failures)
RETRIABLE_EXCEPTIONS = (ConnectionError,)

# Collaborator signals that must reach the caller unchanged
PASSTHROUGH_EXCEPTIONS = (UnknownDivisionError, UpstreamUnavailableError)


async def call_upstream(
    operation: str,
    func: Callable[[], Awaitable[T]],
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    wait: wait_base | None = None,
) -> T:
    """Run an upstream call under a timeout with bounded retry.

    Args:
        operation: Name used in logs and in the raised error
        func: Zero-argument coroutine factory; called once per attempt
        timeout: Seconds per attempt. Defaults to settings.
        max_attempts: Total attempts. Defaults to settings.
        wait: Backoff between attempts

    Returns:
        Whatever ``func`` returns

    Raises:
        UpstreamUnavailableError: On timeout, exhausted retries or any
            unexpected service failure
        UnknownDivisionError: Passed through from the rankings service
    """
    timeout = timeout if timeout is not None else settings.upstream_timeout_seconds
    max_attempts = max_attempts or settings.upstream_max_attempts

    async def attempt() -> T:
        async with asyncio.timeout(timeout):
            return await func()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait or wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
        reraise=False,
    )
    try:
        return await retrying(attempt)
    except PASSTHROUGH_EXCEPTIONS:
        raise
    except RetryError as e:
        reason = str(e.last_attempt.exception())
        logger.warning("upstream retries exhausted", operation=operation, reason=reason)
        raise UpstreamUnavailableError(operation, reason) from e
    except TimeoutError as e:
        logger.warning("upstream call timed out", operation=operation, timeout=timeout)
        raise UpstreamUnavailableError(operation, f"timed out after {timeout}s") from e
    except Exception as e:
        logger.warning("upstream call failed", operation=operation, error=str(e))
        raise UpstreamUnavailableError(operation, str(e)) from e


@dataclass(frozen=True)
class UpstreamGuard:
    """Timeout and retry budget bound to one resolver or splitter.

    Components built with their own Settings route every lookup through
    a guard, so an injected timeout applies without touching the global
    settings.
    """

    timeout: float
    max_attempts: int
    wait: wait_base | None = None

    @classmethod
    def from_settings(cls, config: Settings, wait: wait_base | None = None) -> "UpstreamGuard":
        return cls(
            timeout=config.upstream_timeout_seconds,
            max_attempts=config.upstream_max_attempts,
            wait=wait,
        )

    async def call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run ``func`` through call_upstream with this guard's budget."""
        return await call_upstream(
            operation,
            func,
            timeout=self.timeout,
            max_attempts=self.max_attempts,
            wait=self.wait,
        )
