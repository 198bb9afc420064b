# =============================================================================
# BNC Python SDK -- Outbound Queue
# =============================================================================
#
# Buffers encoded envelopes and drains them onto the transport at the
# pace set by the RateLimiter.  The drain task starts on the first
# enqueue and ends when the queue is empty.
# =============================================================================

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any

from ._logging import logger
from .constants import CONNECT_SETTLE_DELAY, QUEUE_LIMIT, SEND_SETTLE_DELAY
from .errors import BNCCapacityError

if TYPE_CHECKING:
    from .rate_limiter import RateLimiter
    from .session import Session
    from .transport import Transport


class OutboundQueue:
    """FIFO of encoded envelopes with a lazily started drain task.

    Args:
        session: Connection state to wait on before sending.
        transport: Where drained messages go.
        rate_limiter: Supplies the per-message delay and retry gate.
        max_size: Capacity; enqueueing beyond it raises
            :class:`BNCCapacityError`.
    """

    def __init__(
        self,
        session: Session,
        transport: Transport,
        rate_limiter: RateLimiter,
        *,
        max_size: int = QUEUE_LIMIT,
    ) -> None:
        self._session = session
        self._transport = transport
        self._rate_limiter = rate_limiter
        self._max_size = max_size
        self._messages: deque[str] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._sent = 0

    @property
    def size(self) -> int:
        return len(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(self._messages)

    # -- Enqueue --------------------------------------------------------------

    def enqueue(self, encoded: str) -> None:
        """Append a message, starting the drain task if idle."""
        if len(self._messages) >= self._max_size:
            raise BNCCapacityError(self._max_size)
        self._messages.append(encoded)
        self._ensure_draining()

    def requeue_front(self, encoded: str) -> None:
        """Put a message the server bounced ahead of everything else."""
        self._messages.appendleft(encoded)
        self._ensure_draining()

    def clear(self) -> None:
        self._messages.clear()

    async def join(self) -> None:
        """Wait until the current drain task has finished."""
        while self._drain_task is not None:
            task = self._drain_task
            await asyncio.wait({task})
            if self._drain_task is task:
                break

    # -- Drain ----------------------------------------------------------------

    def _ensure_draining(self) -> None:
        if self.is_draining:
            return
        self._drain_task = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        try:
            while self._messages:
                if self._session.destroyed:
                    logger.debug(
                        "Client destroyed, %d queued messages not sent",
                        len(self._messages),
                    )
                    break

                if not self._session.is_connected:
                    await self._session.wait_connected()
                    await asyncio.sleep(CONNECT_SETTLE_DELAY)
                    continue

                await asyncio.sleep(SEND_SETTLE_DELAY)
                await self._rate_limiter.wait_for_retry()

                if not self._messages:
                    break
                delay = self._rate_limiter.delay
                msg = self._messages.popleft()
                await asyncio.sleep(delay)

                try:
                    sent = await self._transport.send(msg)
                except Exception:
                    logger.exception("Transport send raised")
                    sent = False

                if sent:
                    self._sent += 1
                elif not self._session.destroyed:
                    logger.debug("Send failed, requeueing message")
                    self._messages.appendleft(msg)
        finally:
            self._rate_limiter.reset()

    def get_stats(self) -> dict[str, Any]:
        return {
            "size": len(self._messages),
            "capacity": self._max_size,
            "sent": self._sent,
            "draining": self.is_draining,
        }
