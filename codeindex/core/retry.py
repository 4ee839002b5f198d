"""Retry with exponential backoff for calls to rate-limited services."""

from __future__ import annotations

import dataclasses
import logging
from typing import Awaitable, Callable, TypeVar

import openai
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_delay,
    wait_exponential,
    wait_random,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff bounded by total elapsed time (seconds)."""

    initial_delay: float = 0.5
    multiplier: float = 1.5
    max_delay: float = 60.0
    max_elapsed: float = 120.0
    jitter: float = 0.5


DEFAULT_POLICY = BackoffPolicy()


def is_transient_error(exc: BaseException) -> bool:
    """Rate limiting and transport failures are worth retrying; nothing else is."""
    if isinstance(exc, openai.RateLimitError):
        # 429 with insufficient_quota will not clear up by waiting.
        return getattr(exc, "code", None) != "insufficient_quota"
    return isinstance(exc, openai.APIConnectionError)


def _log_before_sleep(label: str) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            f"Transient error for {label} (attempt {state.attempt_number}). "
            f"Retrying in {delay:.2f}s. Error: {exc}"
        )

    return _log


def _retry_kwargs(
    is_transient: Callable[[BaseException], bool],
    policy: BackoffPolicy,
    label: str,
) -> dict:
    return dict(
        retry=retry_if_exception(is_transient),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.multiplier,
            max=policy.max_delay,
        )
        + wait_random(0, policy.jitter),
        stop=stop_after_delay(policy.max_elapsed),
        before_sleep=_log_before_sleep(label),
        reraise=True,
    )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    is_transient: Callable[[BaseException], bool] = is_transient_error,
    policy: BackoffPolicy = DEFAULT_POLICY,
    label: str = "request",
) -> T:
    """Await operation(), retrying transient failures until policy.max_elapsed.

    The last exception is re-raised when the budget is exhausted or the
    error is permanent.
    """
    async for attempt in AsyncRetrying(**_retry_kwargs(is_transient, policy, label)):
        with attempt:
            return await operation()


def retry_sync(
    operation: Callable[[], T],
    is_transient: Callable[[BaseException], bool] = is_transient_error,
    policy: BackoffPolicy = DEFAULT_POLICY,
    label: str = "request",
) -> T:
    """Blocking counterpart of retry_async."""
    retrying = Retrying(**_retry_kwargs(is_transient, policy, label))
    return retrying(operation)
