# =============================================================================
# BNC Python SDK -- Connection Manager
# =============================================================================
#
# Turns transport signals into connection state, re-announces the
# session (and watched accounts) after a reconnect, and terminates the
# socket when the server stops pinging.
# =============================================================================

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable

from ._logging import logger
from .constants import PING_TIMEOUT
from .errors import BNCError, BNCTransportError
from .protocol import MessageCodec, initialize_intent, watch_account_intent
from .types import CloseInfo

if TYPE_CHECKING:
    from .registry import WatchRegistry
    from .router import InboundRouter
    from .session import Session
    from .transport import Transport


class ConnectionListener:
    """Connection lifecycle callbacks.  Override the ones you need."""

    def on_open(self) -> None:
        pass

    def on_down(self, info: CloseInfo) -> None:
        pass

    def on_reopen(self) -> None:
        pass

    def on_close(self) -> None:
        pass


class ConnectionManager:
    """Receives every transport signal on behalf of the client.

    Initialization and re-watch envelopes are written straight to the
    transport, ahead of anything waiting in the outbound queue, since the
    server must know the session before it accepts application messages.

    Args:
        session: Shared connection state.
        transport: Socket to write control messages to and terminate.
        codec: Envelope encoder.
        registry: Source of accounts to re-watch after a reconnect.
        router: Receives inbound frames.
        listener: Caller's lifecycle callbacks.
        on_error: Caller's error sink; transport errors are only logged
            without one.
        ping_timeout: Seconds without a server ping before the socket is
            considered dead.
    """

    def __init__(
        self,
        session: Session,
        transport: Transport,
        codec: MessageCodec,
        registry: WatchRegistry,
        router: InboundRouter,
        *,
        listener: ConnectionListener | None = None,
        on_error: Callable[[BNCError], None] | None = None,
        ping_timeout: float = PING_TIMEOUT,
    ) -> None:
        self._session = session
        self._transport = transport
        self._codec = codec
        self._registry = registry
        self._router = router
        self._listener = listener or ConnectionListener()
        self._on_error = on_error
        self._ping_timeout = ping_timeout
        self._ping_timer: asyncio.TimerHandle | None = None
        self._reopen_count = 0

    @property
    def liveness_armed(self) -> bool:
        return self._ping_timer is not None

    @property
    def reopen_count(self) -> int:
        return self._reopen_count

    # -- Transport signals ----------------------------------------------------

    async def on_open(self) -> None:
        await self._send_initialize()
        self._session.mark_connected()
        self._arm_liveness()
        self._listener.on_open()

    async def on_down(self, info: CloseInfo) -> None:
        self._session.mark_disconnected()
        self._disarm_liveness()
        self._listener.on_down(info)

    async def on_reopen(self) -> None:
        self._reopen_count += 1
        await self._send_initialize()

        # the server keeps hash subscriptions across connections but
        # forgets addresses, so only accounts are announced again
        accounts = self._registry.accounts
        if accounts:
            logger.info("Re-watching %d accounts after reconnect", len(accounts))
        for account in accounts:
            await self._transport.send(
                self._codec.encode(watch_account_intent(account.address))
            )

        self._session.mark_connected()
        self._arm_liveness()
        self._listener.on_reopen()

    async def on_close(self) -> None:
        self._disarm_liveness()
        self._session.mark_disconnected()
        self._listener.on_close()

    def on_message(self, data: str) -> None:
        self._router.route(data)

    def on_error(self, error: BaseException) -> None:
        err = BNCTransportError("There was a WebSocket error", error)
        if self._on_error is not None:
            self._on_error(err)
        else:
            logger.warning("WebSocket error: %s", error)

    def on_ping(self) -> None:
        self._arm_liveness()

    # -- Internal -------------------------------------------------------------

    async def _send_initialize(self) -> None:
        msg = self._codec.encode(initialize_intent(self._session.connection_id))
        if not await self._transport.send(msg):
            logger.warning("Failed to send initialization message")

    def _arm_liveness(self) -> None:
        self._disarm_liveness()
        loop = asyncio.get_running_loop()
        self._ping_timer = loop.call_later(self._ping_timeout, self._on_ping_timeout)

    def _disarm_liveness(self) -> None:
        if self._ping_timer is not None:
            self._ping_timer.cancel()
            self._ping_timer = None

    def _on_ping_timeout(self) -> None:
        self._ping_timer = None
        logger.warning(
            "No ping from server in %.0fs, terminating connection", self._ping_timeout
        )
        self._transport.terminate()
