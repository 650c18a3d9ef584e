"""
Unit tests for the outbound upstream throttle.
"""

import asyncio

import pytest

from service_catalog.app.ratelimit.token_bucket import TokenBucket, UpstreamThrottle


class RecordingSleep:
    """Sleep stand-in that advances a fake clock instead of waiting."""

    def __init__(self, clock):
        self.clock = clock
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)


class TestTokenBucket:
    """Test cases for TokenBucket."""

    @pytest.mark.parametrize("rate,capacity", [(0, 1), (-1, 1), (1, 0)])
    def test_rejects_invalid_arguments(self, rate, capacity):
        with pytest.raises(ValueError):
            TokenBucket(rate, capacity)

    @pytest.mark.asyncio
    async def test_burst_is_served_without_waiting(self, fake_clock):
        sleep = RecordingSleep(fake_clock)
        bucket = TokenBucket(2, 3, clock=fake_clock, sleep=sleep)

        waits = [await bucket.acquire() for _ in range(3)]

        assert waits == [0.0, 0.0, 0.0]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_waits_for_refill_when_empty(self, fake_clock):
        """Test an empty bucket paces calls at the refill rate."""
        sleep = RecordingSleep(fake_clock)
        bucket = TokenBucket(2, 1, clock=fake_clock, sleep=sleep)

        await bucket.acquire()
        waited = await bucket.acquire()

        assert waited == pytest.approx(0.5)
        assert sleep.delays == [pytest.approx(0.5)]

    def test_refill_is_capped_at_capacity(self, fake_clock):
        bucket = TokenBucket(10, 4, clock=fake_clock)

        fake_clock.advance(100)

        assert bucket.tokens == 4


class TestUpstreamThrottle:
    """Test cases for UpstreamThrottle."""

    @pytest.mark.asyncio
    async def test_caps_in_flight_calls(self):
        throttle = UpstreamThrottle("jikan", rate=1000, burst=1000, max_concurrency=2)
        in_flight = 0
        peak = 0

        async def call():
            nonlocal in_flight, peak
            async with throttle:
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1

        await asyncio.gather(*(call() for _ in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_paces_calls_through_bucket(self, fake_clock):
        sleep = RecordingSleep(fake_clock)
        throttle = UpstreamThrottle("tmdb", rate=4, burst=2, max_concurrency=10, clock=fake_clock, sleep=sleep)

        for _ in range(4):
            async with throttle:
                pass

        assert sleep.delays == [pytest.approx(0.25), pytest.approx(0.25)]

    @pytest.mark.asyncio
    async def test_releases_slot_when_body_raises(self):
        throttle = UpstreamThrottle("tmdb", rate=100, burst=10, max_concurrency=1)

        with pytest.raises(RuntimeError):
            async with throttle:
                raise RuntimeError("boom")

        async with throttle:
            pass
