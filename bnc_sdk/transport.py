# =============================================================================
# BNC Python SDK -- Reconnecting WebSocket Transport
# =============================================================================
#
# Keeps one websocket open, reconnecting with backoff when it drops, and
# reports lifecycle signals (open, reopen, down, close, message, error,
# ping) to a TransportListener.  Knows nothing about the protocol.
# =============================================================================

from __future__ import annotations

import asyncio
import random
from typing import Any, Protocol

import websockets
import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.frames import Frame, Opcode

from ._logging import logger
from .constants import (
    CLOSE_TIMEOUT,
    CONNECTION_TIMEOUT,
    MAX_MESSAGE_SIZE,
    RECONNECT_ABSOLUTE_CAP,
    WS_CLOSE_ABNORMAL,
    WS_CLOSE_NORMAL,
)
from .errors import BNCConnectionError
from .types import CloseInfo, ReconnectConfig, ReconnectMode


class TransportListener(Protocol):
    """Receiver of transport signals."""

    async def on_open(self) -> None: ...

    async def on_reopen(self) -> None: ...

    async def on_down(self, info: CloseInfo) -> None: ...

    async def on_close(self) -> None: ...

    def on_message(self, data: str) -> None: ...

    def on_error(self, error: BaseException) -> None: ...

    def on_ping(self) -> None: ...


class Transport(Protocol):
    """What the rest of the client needs from a transport."""

    def set_listener(self, listener: TransportListener) -> None: ...

    async def start(self) -> None: ...

    async def send(self, data: str) -> bool: ...

    def terminate(self) -> None: ...

    async def close(self) -> None: ...

    async def wait_closed(self) -> None: ...


class _PingAwareConnection(websockets.asyncio.client.ClientConnection):
    """Client connection that reports incoming ping frames."""

    on_ping: Any = None

    def process_event(self, event: Any) -> None:
        super().process_event(event)
        # the handshake response goes through here too
        if (
            isinstance(event, Frame)
            and event.opcode is Opcode.PING
            and self.on_ping is not None
        ):
            self.on_ping()


class ReconnectingTransport:
    """Websocket that reconnects on its own until closed.

    A supervisor task opens the socket, reports ``open`` the first time
    and ``reopen`` afterwards, pumps text frames into
    ``listener.on_message`` and reports ``down`` when the socket drops.
    It then waits out the backoff delay and tries again.  ``close`` is
    reported once, when the supervisor stops.

    Args:
        url: Server URL, e.g. ``"wss://api.blocknative.com/v0"``.
        reconnect: Backoff configuration.
        extra_headers: Additional HTTP headers for the handshake.
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect: ReconnectConfig | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._url = url
        self._reconnect_cfg = reconnect or ReconnectConfig()
        self._extra_headers = extra_headers or {}
        self._listener: TransportListener | None = None

        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._closing = False
        self._reconnect_attempts = 0
        self._opened_once = False

    def set_listener(self, listener: TransportListener) -> None:
        self._listener = listener

    # -- Properties -----------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Start the supervisor task.  Returns without waiting for open."""
        if self._listener is None:
            raise BNCConnectionError("Transport has no listener")
        if self._closing:
            raise BNCConnectionError("Transport has been closed")
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="bnc-transport")

    async def close(self) -> None:
        """Close the socket and stop reconnecting."""
        if self._closing:
            return
        self._closing = True
        self._wakeup.set()

        if self._task is None:
            if self._listener is not None:
                await self._listener.on_close()
            return

        if self._ws is not None:
            try:
                await self._ws.close(WS_CLOSE_NORMAL, "Client disconnect")
            except Exception as exc:
                logger.debug("Close failed: %s", exc)
        await asyncio.wait({self._task})

    async def wait_closed(self) -> None:
        """Wait for the supervisor to stop; re-raise what stopped it."""
        if self._task is not None:
            await self._task

    def terminate(self) -> None:
        """Drop the TCP connection without a close handshake.

        The receive loop then sees an abnormal close and the reconnect
        logic takes over.
        """
        if self._ws is None:
            return
        logger.debug("Terminating websocket")
        self._ws.transport.abort()

    # -- Send -----------------------------------------------------------------

    async def send(self, data: str) -> bool:
        """Send a text frame.  Returns True on success."""
        ws = self._ws
        if ws is None or self._closing:
            return False
        try:
            await ws.send(data)
            return True
        except ConnectionClosed:
            logger.debug("Send failed: connection closed")
            return False
        except Exception as exc:
            logger.debug("Send failed: %s", exc)
            return False

    # -- Internal: supervisor -------------------------------------------------

    async def _run(self) -> None:
        listener = self._listener
        try:
            while not self._closing:
                try:
                    ws = await self._open()
                except Exception as exc:
                    logger.debug("Connect failed: %s", exc)
                    listener.on_error(exc)
                    if not await self._backoff():
                        break
                    continue

                if self._closing:
                    await ws.close(WS_CLOSE_NORMAL, "Client disconnect")
                    break

                self._ws = ws
                self._reconnect_attempts = 0
                if self._opened_once:
                    logger.info("Reconnected to %s", self._url)
                    await listener.on_reopen()
                else:
                    self._opened_once = True
                    await listener.on_open()

                info = await self._recv_loop(ws)
                self._ws = None
                if self._closing:
                    break

                logger.debug("Websocket down: code=%d reason=%s", info.code, info.reason)
                await listener.on_down(info)
                if not await self._backoff():
                    break
        finally:
            ws, self._ws = self._ws, None
            if ws is not None:
                ws.transport.abort()
            self._closing = True
            await listener.on_close()

    async def _open(self) -> websockets.asyncio.client.ClientConnection:
        ws = await websockets.asyncio.client.connect(
            self._url,
            additional_headers=self._extra_headers,
            max_size=MAX_MESSAGE_SIZE,
            open_timeout=CONNECTION_TIMEOUT,
            close_timeout=CLOSE_TIMEOUT,
            ping_interval=None,  # the server pings us
            create_connection=self._create_connection,
        )
        return ws

    def _create_connection(self, *args: Any, **kwargs: Any) -> _PingAwareConnection:
        # attach before any frame can arrive
        ws = _PingAwareConnection(*args, **kwargs)
        ws.on_ping = self._listener.on_ping
        return ws

    async def _recv_loop(self, ws: websockets.asyncio.client.ClientConnection) -> CloseInfo:
        """Forward frames until the socket closes."""
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8")
                self._listener.on_message(message)
        except ConnectionClosedError as exc:
            logger.debug("Websocket closed with error: %s", exc)
        return CloseInfo(
            code=ws.close_code if ws.close_code is not None else WS_CLOSE_ABNORMAL,
            reason=ws.close_reason or "",
        )

    async def _backoff(self) -> bool:
        """Sleep before the next attempt.  False when we should stop."""
        cfg = self._reconnect_cfg
        if cfg.max_attempts >= 0 and self._reconnect_attempts >= cfg.max_attempts:
            logger.error("Max reconnect attempts (%d) reached", cfg.max_attempts)
            return False

        delay = self._calculate_delay()
        self._reconnect_attempts += 1
        logger.info(
            "Reconnecting in %.1fs (attempt %d/%s)",
            delay,
            self._reconnect_attempts,
            cfg.max_attempts if cfg.max_attempts >= 0 else "inf",
        )
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return not self._closing

    def _calculate_delay(self) -> float:
        """Compute reconnect delay based on strategy."""
        cfg = self._reconnect_cfg
        attempt = self._reconnect_attempts

        if cfg.mode == ReconnectMode.LINEAR:
            delay = cfg.base_delay + attempt * 1.0
        elif cfg.mode == ReconnectMode.FIBONACCI:
            delay = cfg.base_delay * _fib(min(attempt + 1, 10))
        else:
            delay = cfg.base_delay * (cfg.factor**attempt)

        delay = min(delay, cfg.max_delay, RECONNECT_ABSOLUTE_CAP)

        if cfg.jitter:
            jitter_amount = delay * 0.2 * (random.random() - 0.5)
            delay = max(0.0, delay + jitter_amount)

        return delay


def _fib(n: int) -> int:
    """Fibonacci number for reconnect delay calculation."""
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a
