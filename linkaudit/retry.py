"""Bounded retry combinator shared by navigation and health checks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)
from tenacity.wait import wait_base

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """Delay before retry ``n`` (1-based): ``base * factor ** (n - 1)``, capped."""

    base: float = 1.0
    factor: float = 1.0
    maximum: float = 30.0

    def delay(self, attempt: int) -> float:
        return min(self.maximum, self.base * self.factor ** max(0, attempt - 1))

    def strategy(self) -> wait_base:
        """The equivalent tenacity wait strategy."""
        if self.factor == 1.0:
            return wait_fixed(min(self.maximum, self.base))
        return wait_exponential(multiplier=self.base, exp_base=self.factor, max=self.maximum)


NO_BACKOFF = Backoff(base=0.0)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff: Backoff = NO_BACKOFF,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``attempts`` times.

    An exception is retried when it is an instance of ``retry_on`` and
    ``should_retry`` (if given) agrees; anything else propagates at once. The
    last exception propagates when attempts run out.
    """
    attempts = max(1, attempts)

    def retryable(exc: BaseException) -> bool:
        if not isinstance(exc, retry_on):
            return False
        return should_retry(exc) if should_retry else True

    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        if on_retry is not None and exc is not None:
            on_retry(state.attempt_number, exc)
        LOGGER.debug(
            "Retry %d/%d in %.2fs after: %s",
            state.attempt_number,
            attempts - 1,
            state.next_action.sleep if state.next_action else 0.0,
            exc,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=backoff.strategy(),
        retry=retry_if_exception(retryable),
        before_sleep=before_sleep,
        reraise=True,
        sleep=sleep,
    )
    return await retrying(operation)
