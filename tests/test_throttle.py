"""Tests for throttle.py"""

import asyncio

import pytest

from tariff_impact.throttle import RequestLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_request_is_not_delayed():
    clock = FakeClock()
    limiter = RequestLimiter(2.0, clock=clock, sleep=clock.sleep)
    assert asyncio.run(limiter.acquire()) == 0.0
    assert clock.sleeps == []


def test_back_to_back_requests_are_spaced():
    clock = FakeClock()
    limiter = RequestLimiter(2.0, clock=clock, sleep=clock.sleep)

    async def three():
        await limiter.acquire()
        clock.now += 0.5
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(three())
    assert clock.sleeps == [pytest.approx(1.5), pytest.approx(2.0)]


def test_no_delay_after_interval_elapsed():
    clock = FakeClock()
    limiter = RequestLimiter(2.0, clock=clock, sleep=clock.sleep)

    async def two():
        await limiter.acquire()
        clock.now += 5
        return await limiter.acquire()

    assert asyncio.run(two()) == 0.0


def test_limiters_do_not_share_state():
    clock = FakeClock()
    a = RequestLimiter(2.0, clock=clock, sleep=clock.sleep)
    b = RequestLimiter(2.0, clock=clock, sleep=clock.sleep)

    async def both():
        await a.acquire()
        await b.acquire()

    asyncio.run(both())
    assert clock.sleeps == []


def test_limiter_survives_separate_event_loops():
    clock = FakeClock()

    async def yielding_sleep(seconds):
        await clock.sleep(seconds)
        await asyncio.sleep(0)  # let the other acquirers queue on the lock

    limiter = RequestLimiter(2.0, clock=clock, sleep=yielding_sleep)

    async def burst():
        return await asyncio.gather(limiter.acquire(), limiter.acquire(), limiter.acquire())

    assert asyncio.run(burst()) == [0.0, 2.0, 2.0]
    assert asyncio.run(burst()) == [2.0, 2.0, 2.0]
