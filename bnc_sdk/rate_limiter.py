# =============================================================================
# BNC Python SDK -- Server-Driven Rate Limiter
# =============================================================================
#
# The server dictates the pace: a rate-limit error frame carries a new
# rule and a retry delay.  The drain task asks for the per-message delay
# and waits on the retry gate before each send.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import Any

from ._logging import logger
from .types import DEFAULT_RATE_LIMIT_RULE, RateLimitRule


class RateLimiter:
    """Active :class:`RateLimitRule` plus an optional retry gate.

    Args:
        default_rule: Rule used at start and after every reset.
    """

    def __init__(self, default_rule: RateLimitRule = DEFAULT_RATE_LIMIT_RULE) -> None:
        self._default_rule = default_rule
        self._rule = default_rule
        self._retry_gate: asyncio.Task[None] | None = None

    @property
    def rule(self) -> RateLimitRule:
        return self._rule

    @property
    def default_rule(self) -> RateLimitRule:
        return self._default_rule

    @property
    def delay(self) -> float:
        """Seconds to wait before the next message under the active rule."""
        return self._rule.delay

    @property
    def retry_pending(self) -> bool:
        return self._retry_gate is not None

    def update(self, rule: RateLimitRule) -> None:
        if rule != self._rule:
            logger.debug(
                "Rate limit rule: %s msgs / %ss", rule.points, rule.duration
            )
        self._rule = rule

    def reset(self) -> None:
        self._rule = self._default_rule

    def install_retry_gate(self, retry_ms: float) -> None:
        """Hold back the next send for ``retry_ms`` milliseconds from now.

        Replaces any gate still outstanding.  Must be called from a
        running event loop.
        """
        delay = max(0.0, float(retry_ms or 0)) / 1000
        self._retry_gate = asyncio.ensure_future(asyncio.sleep(delay))
        logger.info("Rate limited by server, retrying in %.3fs", delay)

    async def wait_for_retry(self) -> None:
        """Await the retry gate if one is set, then clear it."""
        while self._retry_gate is not None:
            gate = self._retry_gate
            await asyncio.wait({gate})
            if self._retry_gate is gate:
                self._retry_gate = None

    def cancel(self) -> None:
        if self._retry_gate is not None:
            self._retry_gate.cancel()
            self._retry_gate = None

    def get_stats(self) -> dict[str, Any]:
        return {
            "points": self._rule.points,
            "duration": self._rule.duration,
            "delay": round(self._rule.delay, 6),
            "retry_pending": self.retry_pending,
        }
