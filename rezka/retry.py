"""Bounded retry for remote operations."""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from rezka.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to re-run a failed operation.

    ``max_retries`` counts extra attempts, so the default makes 4 calls in
    total. Errors are retried regardless of kind unless
    ``retry_upstream_errors`` is off, in which case a provider-declared
    failure is surfaced after the first attempt. ``NotFoundError`` is a
    lookup in state the caller already holds and is never retried.
    """
    max_retries: int = 3
    retry_upstream_errors: bool = True

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def should_retry(self, error: Exception) -> bool:
        if isinstance(error, NotFoundError):
            return False
        if isinstance(error, UpstreamError):
            return self.retry_upstream_errors
        return True


DEFAULT_POLICY = RetryPolicy()


async def call_with_retry(
    op: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy = DEFAULT_POLICY,
    **kwargs: Any
) -> T:
    """Await ``op(*args, **kwargs)``, re-invoking it with the same arguments on failure.

    The last error is re-raised unchanged once the attempts are used up.
    Cancellation is never retried.
    """
    name = getattr(op, "__qualname__", repr(op))
    attempt = 1
    while True:
        try:
            return await op(*args, **kwargs)
        except Exception as e:
            if attempt >= policy.attempts or not policy.should_retry(e):
                raise
            logger.warning("%s failed (attempt %d/%d): %s", name, attempt, policy.attempts, e)
            attempt += 1


def retrying(method: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Wrap an async method in ``call_with_retry`` using ``self.retry_policy``."""

    @functools.wraps(method)
    async def wrapper(self, *args: Any, **kwargs: Any) -> T:
        policy = getattr(self, "retry_policy", DEFAULT_POLICY)
        return await call_with_retry(method, self, *args, policy=policy, **kwargs)

    return wrapper
