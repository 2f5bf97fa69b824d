import asyncio

import pytest

from buckled.extraction.rate_limit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(2.0, clock=clock, sleep=clock.sleep)


class TestRateLimiter:
    async def test_first_call_does_not_wait(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.acquire()

        assert clock.sleeps == []
        assert limiter.last_call == 0.0

    async def test_spaces_calls_by_min_interval(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.acquire()
        clock.now = 0.5

        await limiter.acquire()

        assert clock.sleeps == [pytest.approx(1.5)]
        assert clock.now >= 2.0

    async def test_no_wait_after_interval_elapsed(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.acquire()
        clock.now = 3.0

        await limiter.acquire()

        assert clock.sleeps == []

    async def test_concurrent_callers_get_consecutive_slots(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await asyncio.gather(limiter.acquire(), limiter.acquire(), limiter.acquire())

        assert limiter.last_call == pytest.approx(4.0)
        assert sum(clock.sleeps) == pytest.approx(4.0)

    async def test_backoff_counts_as_fresh_call(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.acquire()

        await limiter.backoff(5.0)

        assert clock.sleeps == [5.0]
        assert limiter.last_call == 5.0
