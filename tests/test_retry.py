"""
Retry policy tests
"""

import pytest

from c3talk.core.errors import (
    ProviderError,
    ProviderOverloadedError,
    RateLimitedError,
)
from c3talk.services.translation.retry import with_retry


class CountingOperation:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self, sleeper):
        operation = CountingOperation("ok")

        result = await with_retry(operation, sleep=sleeper)

        assert result == "ok"
        assert operation.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_overloaded_twice_then_success(self, sleeper):
        # Setup
        operation = CountingOperation(
            ProviderOverloadedError("gemini error: 503 overloaded", status_code=503),
            ProviderError("gemini error: 503 Service Unavailable", status_code=503),
            {"translation": "ok"},
        )

        # Execute
        result = await with_retry(operation, max_retries=3, base_delay_ms=2000, sleep=sleeper)

        # Verify: delays of 2s then 4s
        assert result == {"translation": "ok"}
        assert operation.calls == 3
        assert sleeper.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, sleeper):
        error = ProviderError("upstream 500", status_code=500)
        operation = CountingOperation(error, error, error)

        with pytest.raises(ProviderError) as exc_info:
            await with_retry(operation, max_retries=3, base_delay_ms=100, sleep=sleeper)

        assert exc_info.value is error
        assert operation.calls == 3
        assert sleeper.delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_rate_limit_is_never_retried(self, sleeper):
        operation = CountingOperation(RateLimitedError("gemini error: 429", status_code=429))

        with pytest.raises(RateLimitedError):
            await with_retry(operation, sleep=sleeper)

        assert operation.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, sleeper):
        operation = CountingOperation(ProviderError("gemini error: 400 bad request", status_code=400))

        with pytest.raises(ProviderError):
            await with_retry(operation, sleep=sleeper)

        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_zero_attempts_still_calls_once(self, sleeper):
        operation = CountingOperation("ok")

        assert await with_retry(operation, max_retries=0, sleep=sleeper) == "ok"
        assert operation.calls == 1
