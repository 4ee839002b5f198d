"""Unit tests for transient-error classification and retry wrappers."""

import httpx
import openai
import pytest

from codeindex.core.retry import BackoffPolicy, is_transient_error, retry_async, retry_sync

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _rate_limit(code=None) -> openai.RateLimitError:
    body = {"message": "slow down", "code": code} if code else None
    return openai.RateLimitError(
        "rate limited", response=httpx.Response(429, request=_REQUEST), body=body
    )


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_REQUEST)


def _flaky(failures):
    """Operation raising the given exceptions in order, then returning 'ok'."""
    state = {"calls": 0}
    pending = list(failures)

    def _call():
        state["calls"] += 1
        if pending:
            raise pending.pop(0)
        return "ok"

    return _call, state


def test_classifies_transient_and_permanent_errors() -> None:
    assert is_transient_error(_rate_limit())
    assert is_transient_error(_connection_error())
    assert not is_transient_error(_rate_limit(code="insufficient_quota"))
    assert not is_transient_error(
        openai.AuthenticationError("bad key", response=httpx.Response(401, request=_REQUEST), body=None)
    )
    assert not is_transient_error(ValueError("boom"))


@pytest.mark.asyncio
async def test_retry_async_recovers_from_transient_errors(fast_policy) -> None:
    call, state = _flaky([_rate_limit(), _connection_error()])

    async def operation():
        return call()

    assert await retry_async(operation, policy=fast_policy) == "ok"
    assert state["calls"] == 3


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_permanent_errors(fast_policy) -> None:
    call, state = _flaky([ValueError("bad request")])

    async def operation():
        return call()

    with pytest.raises(ValueError, match="bad request"):
        await retry_async(operation, policy=fast_policy)
    assert state["calls"] == 1


@pytest.mark.asyncio
async def test_retry_async_gives_up_when_budget_is_spent() -> None:
    call, state = _flaky([_connection_error()] * 10)
    policy = BackoffPolicy(initial_delay=0.0, max_delay=0.0, max_elapsed=0.0, jitter=0.0)

    async def operation():
        return call()

    with pytest.raises(openai.APIConnectionError):
        await retry_async(operation, policy=policy)
    assert state["calls"] == 1


@pytest.mark.asyncio
async def test_retry_async_awaits_coroutine_returned_by_plain_callable(fast_policy) -> None:
    call, state = _flaky([_rate_limit()])

    async def fetch(value):
        call()
        return value

    result = await retry_async(lambda: fetch([1.0, 2.0]), policy=fast_policy)

    assert result == [1.0, 2.0]
    assert state["calls"] == 2


def test_retry_sync_uses_custom_classifier(fast_policy) -> None:
    call, state = _flaky([KeyError("a"), KeyError("b")])

    result = retry_sync(call, is_transient=lambda e: isinstance(e, KeyError), policy=fast_policy)

    assert result == "ok"
    assert state["calls"] == 3
