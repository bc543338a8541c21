"""
Testes do retry com backoff exponencial e do cooldown compartilhado.
"""

import httpx
import pytest

from app.services.search_manager import (
    CooldownState,
    RequestScheduler,
    RetryPolicy,
    RollingWindowRateLimiter,
    SearchServiceError,
)

SEARCH_URL = "https://duckduckgo.com/html/"


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", SEARCH_URL)
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"status {status_code}", request=request, response=response)


def _policy(clock, max_attempts=3, cooldown_seconds=30):
    scheduler = RequestScheduler(
        min_delay_seconds=0,
        jitter_seconds=0,
        rate_limiter=RollingWindowRateLimiter(max_per_minute=100, jitter_seconds=0),
        cooldown=CooldownState(cooldown_seconds=cooldown_seconds),
        clock=clock,
        sleep=clock.sleep,
    )
    policy = RetryPolicy(
        scheduler=scheduler,
        max_attempts=max_attempts,
        base_delay_seconds=1.0,
        jitter_seconds=0,
        sleep=clock.sleep,
    )
    return scheduler, policy


class TestRetryPolicy:

    async def test_transient_failures_are_retried_with_backoff_and_cooldown(self, clock):
        scheduler, policy = _policy(clock)
        calls = []

        async def call():
            calls.append(clock.now)
            if len(calls) < 3:
                raise _status_error(429)
            return "ok"

        assert await policy.run("search", call) == "ok"

        assert len(calls) == 3
        # backoff 1s, cooldown restante 29s, backoff 2s, cooldown restante 28s
        assert clock.sleeps == [1.0, 29.0, 2.0, 28.0]
        assert calls == [0.0, 30.0, 60.0]
        await scheduler.close()

    async def test_exhaustion_surfaces_one_wrapped_error(self, clock):
        scheduler, policy = _policy(clock, max_attempts=3)
        calls = 0

        async def call():
            nonlocal calls
            calls += 1
            raise _status_error(503)

        with pytest.raises(SearchServiceError) as exc_info:
            await policy.run("search", call)

        error = exc_info.value
        assert calls == 3
        assert error.service == "DuckDuckGo"
        assert error.operation == "search"
        assert error.status_code == 503
        assert str(error).startswith("DuckDuckGo search failed (status 503 Service Unavailable")
        assert isinstance(error.__cause__, httpx.HTTPStatusError)
        assert policy.get_status()["metrics"]["exhausted"] == 1
        await scheduler.close()

    async def test_non_retryable_status_fails_immediately(self, clock):
        scheduler, policy = _policy(clock)
        calls = 0

        async def call():
            nonlocal calls
            calls += 1
            raise _status_error(404)

        with pytest.raises(SearchServiceError) as exc_info:
            await policy.run("instant answer", call)

        assert calls == 1
        assert exc_info.value.status_code == 404
        assert exc_info.value.operation == "instant answer"
        assert not scheduler.cooldown.is_active(clock.now)
        await scheduler.close()

    async def test_network_error_is_wrapped_and_flagged_as_connectivity(self, clock):
        scheduler, policy = _policy(clock)

        async def call():
            raise httpx.ConnectError("getaddrinfo failed", request=httpx.Request("GET", SEARCH_URL))

        with pytest.raises(SearchServiceError) as exc_info:
            await policy.run("search", call)

        assert exc_info.value.is_connectivity
        assert exc_info.value.url == SEARCH_URL
        await scheduler.close()

    async def test_failure_trips_cooldown_for_every_caller(self, clock):
        scheduler, policy = _policy(clock, max_attempts=1, cooldown_seconds=30)

        async def throttled():
            raise _status_error(429)

        with pytest.raises(SearchServiceError):
            await policy.run("search", throttled)

        assert scheduler.cooldown.remaining(clock.now) == 30.0

        fired = []

        async def other_caller():
            fired.append(clock.now)

        await scheduler.submit(other_caller)
        assert fired == [30.0]
        await scheduler.close()
