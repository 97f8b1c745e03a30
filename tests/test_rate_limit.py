import asyncio

import pytest

from pipelines.ratelimit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _limiter(clock: FakeClock, **intervals: int) -> RateLimiter:
    return RateLimiter(intervals, clock=clock, sleep=clock.sleep)


def test_first_call_passes_and_second_waits_for_interval():
    clock = FakeClock()
    limiter = _limiter(clock, google=100)

    async def scenario():
        await limiter.acquire("google")
        clock.now += 0.03
        await limiter.acquire("google")

    asyncio.run(scenario())

    assert clock.sleeps == [pytest.approx(0.07)]


def test_no_wait_once_interval_has_elapsed():
    clock = FakeClock()
    limiter = _limiter(clock, weather=1000)

    async def scenario():
        await limiter.acquire("weather")
        clock.now += 1.5
        await limiter.acquire("weather")

    asyncio.run(scenario())

    assert clock.sleeps == []


def test_keys_are_independent_and_unknown_keys_pass_through():
    clock = FakeClock()
    limiter = _limiter(clock, google=100, census=200)

    async def scenario():
        await limiter.acquire("google")
        await limiter.acquire("census")
        await limiter.acquire("unlisted")
        await limiter.acquire("unlisted")

    asyncio.run(scenario())

    assert clock.sleeps == []
    assert limiter.interval("census") == pytest.approx(0.2)
    assert limiter.interval("unlisted") == 0.0


def test_concurrent_callers_are_spaced_in_call_order():
    clock = FakeClock()
    limiter = _limiter(clock, bls=500)
    order: list[int] = []

    async def caller(idx: int) -> None:
        await limiter.acquire("bls")
        order.append(idx)

    async def scenario():
        await asyncio.gather(*(caller(idx) for idx in range(3)))

    asyncio.run(scenario())

    assert order == [0, 1, 2]
    assert clock.sleeps == [pytest.approx(0.5), pytest.approx(0.5)]
    assert clock.now == pytest.approx(1.0)
