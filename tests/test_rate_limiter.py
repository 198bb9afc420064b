"""Tests for the server-driven rate limiter."""

import asyncio
import time

import pytest

from bnc_sdk.rate_limiter import RateLimiter
from bnc_sdk.types import DEFAULT_RATE_LIMIT_RULE, RateLimitRule


class TestRateLimitRule:
    @pytest.mark.parametrize(
        "points,duration", [(150, 1.0), (10, 1.0), (1, 5.0), (3, 0.5)]
    )
    def test_delay_is_duration_over_points(self, points, duration):
        assert RateLimitRule(points, duration).delay == duration / points

    def test_default_rule(self):
        assert DEFAULT_RATE_LIMIT_RULE == RateLimitRule(150, 1.0)

    def test_from_wire(self):
        rule = RateLimitRule.from_wire({"points": 5, "duration": 2})
        assert rule == RateLimitRule(5.0, 2.0)
        assert rule.delay == 0.4

    @pytest.mark.parametrize(
        "data",
        [
            {"points": 5},
            {"duration": 1},
            {"points": "x", "duration": 1},
            {"points": 0, "duration": 1},
            {"points": 5, "duration": -1},
            {"points": float("inf"), "duration": 1},
            None,
        ],
    )
    def test_from_wire_rejects_unusable_rules(self, data):
        with pytest.raises(ValueError):
            RateLimitRule.from_wire(data)


class TestRateLimiter:
    def test_update_and_reset(self):
        rl = RateLimiter()
        rl.update(RateLimitRule(10, 1))
        assert rl.delay == 0.1
        rl.reset()
        assert rl.rule == DEFAULT_RATE_LIMIT_RULE

    def test_no_gate_initially(self):
        assert RateLimiter().retry_pending is False

    @pytest.mark.asyncio
    async def test_retry_gate_waits_then_clears(self):
        rl = RateLimiter()
        rl.install_retry_gate(50)
        assert rl.retry_pending is True
        start = time.monotonic()
        await rl.wait_for_retry()
        assert time.monotonic() - start >= 0.04
        assert rl.retry_pending is False

    @pytest.mark.asyncio
    async def test_wait_without_gate_returns_immediately(self):
        rl = RateLimiter()
        await asyncio.wait_for(rl.wait_for_retry(), timeout=0.1)

    @pytest.mark.asyncio
    async def test_gate_replaced_while_waiting(self):
        rl = RateLimiter()
        rl.install_retry_gate(10)
        waiter = asyncio.ensure_future(rl.wait_for_retry())
        await asyncio.sleep(0)
        rl.install_retry_gate(60)
        start = time.monotonic()
        await waiter
        assert time.monotonic() - start >= 0.05
        assert rl.retry_pending is False

    @pytest.mark.asyncio
    async def test_cancel_releases_waiter(self):
        rl = RateLimiter()
        rl.install_retry_gate(10_000)
        waiter = asyncio.ensure_future(rl.wait_for_retry())
        await asyncio.sleep(0)
        rl.cancel()
        await asyncio.wait_for(waiter, timeout=0.5)
        assert rl.retry_pending is False
