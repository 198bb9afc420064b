# =============================================================================
# BNC Python SDK -- Async Client
# =============================================================================
#
# Primary public API.  Owns the session, registry, queue, rate limiter,
# router and connection manager, and wires them to the transport.
# =============================================================================

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from ._logging import logger
from .config import ClientOptions
from .connection import ConnectionListener, ConnectionManager
from .emitter import Emitter
from .errors import BNCConnectionError, BNCError, BNCValidationError
from .outbound_queue import OutboundQueue
from .protocol import (
    MessageCodec,
    transaction_key,
    unwatch_account_intent,
    unwatch_transaction_intent,
    watch_account_intent,
    watch_transaction_intent,
)
from .rate_limiter import RateLimiter
from .registry import WatchedAccount, WatchHandle, WatchRegistry
from .router import InboundRouter
from .session import Session, SessionStore
from .transport import ReconnectingTransport, Transport
from .types import (
    ConnectionState,
    RateLimitRule,
    ReconnectConfig,
    System,
    TransactionHandler,
    WatchKind,
)


@dataclass
class Subscription:
    """Result of :meth:`BlocknativeClient.transaction` / ``account``.

    Attributes:
        emitter: Register per-event handlers here.
        details: What was sent to the server.
        handle: Pass to :meth:`BlocknativeClient.unsubscribe`.
    """

    emitter: Emitter
    details: dict[str, Any] = field(default_factory=dict)
    handle: WatchHandle | None = None


class BlocknativeClient:
    """Async client for the transaction-monitoring stream.

    Args:
        dapp_id: API key.
        network_id: Numeric network id, e.g. ``1`` for mainnet.
        system: ``"ethereum"`` (default) or ``"bitcoin"``.
        name: Client name, used to key the stored connection id.
        api_url: Websocket endpoint.
        transaction_handlers: Called with ``(state, listener_result)`` for
            every transaction event, matched or not.
        listener: :class:`ConnectionListener` for lifecycle callbacks.
        on_error: Receives :class:`~bnc_sdk.errors.BNCError` instances.
            Without it, server errors are raised and close the client.
        reconnect: Transport backoff settings.
        session_store: Store for the connection id.
        queue_limit: Outbound queue capacity.
        ping_timeout: Seconds without a server ping before reconnecting.
        rate_limit: Rule used until the server sends another one.
        transport: Custom transport, mainly for tests.

    Example::

        async with BlocknativeClient("api-key", network_id=1) as client:
            sub = client.account("0xabc...")
            sub.emitter.on("all", lambda state: print(state.kind, state.hash))
            await client.wait_closed()
    """

    def __init__(
        self,
        dapp_id: str,
        *,
        network_id: int,
        system: str = System.ETHEREUM,
        name: str | None = None,
        api_url: str | None = None,
        transaction_handlers: list[TransactionHandler] | None = None,
        listener: ConnectionListener | None = None,
        on_error: Callable[[BNCError], None] | None = None,
        reconnect: ReconnectConfig | None = None,
        session_store: SessionStore | None = None,
        queue_limit: int | None = None,
        ping_timeout: float | None = None,
        rate_limit: RateLimitRule | None = None,
        transport: Transport | None = None,
    ) -> None:
        overrides = {
            "name": name,
            "api_url": api_url,
            "reconnect": reconnect,
            "queue_limit": queue_limit,
            "ping_timeout": ping_timeout,
            "rate_limit": rate_limit,
        }
        self._options = ClientOptions(
            dapp_id=dapp_id,
            network_id=network_id,
            system=system,
            transaction_handlers=transaction_handlers or [],
            listener=listener,
            on_error=on_error,
            session_store=session_store,
            **{k: v for k, v in overrides.items() if v is not None},
        )
        opts = self._options
        self._system = opts.system

        self._session = Session(opts.dapp_id, opts.name, opts.session_store)
        self._codec = MessageCodec(opts.dapp_id, opts.system, opts.network_id)
        self._registry = WatchRegistry(opts.system)
        self._rate_limiter = RateLimiter(opts.rate_limit)
        self._transport: Transport = transport or ReconnectingTransport(
            opts.api_url, reconnect=opts.reconnect
        )
        self._queue = OutboundQueue(
            self._session,
            self._transport,
            self._rate_limiter,
            max_size=opts.queue_limit,
        )
        self._router = InboundRouter(
            system=opts.system,
            session=self._session,
            codec=self._codec,
            registry=self._registry,
            rate_limiter=self._rate_limiter,
            queue=self._queue,
            transaction_handlers=opts.transaction_handlers,
            on_error=opts.on_error,
        )
        self._connection = ConnectionManager(
            self._session,
            self._transport,
            self._codec,
            self._registry,
            self._router,
            listener=opts.listener,
            on_error=opts.on_error,
            ping_timeout=opts.ping_timeout,
        )
        self._transport.set_listener(self._connection)

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> BlocknativeClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.destroy()

    # -- Connect / Disconnect -------------------------------------------------

    async def connect(self) -> None:
        """Start the transport.  Messages queue up until it is open."""
        self._check_destroyed()
        await self._transport.start()

    async def destroy(self) -> None:
        """Close the connection for good and forget every watch."""
        if self._session.destroyed:
            return
        self._session.mark_destroyed()
        self._rate_limiter.cancel()
        self._registry.clear()
        await self._transport.close()

    async def close(self) -> None:
        """Alias for destroy."""
        await self.destroy()

    async def wait_closed(self) -> None:
        """Wait until the transport stops.

        Re-raises the server error that stopped it when no ``on_error``
        sink was configured.
        """
        await self._transport.wait_closed()

    # -- Properties -----------------------------------------------------------

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def state(self) -> ConnectionState:
        return self._session.state

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    @property
    def destroyed(self) -> bool:
        return self._session.destroyed

    @property
    def connection_id(self) -> str | None:
        return self._session.connection_id

    @property
    def queue_size(self) -> int:
        return self._queue.size

    @property
    def watched_accounts(self) -> tuple[WatchedAccount, ...]:
        return self._registry.accounts

    # -- Watch / Unwatch ------------------------------------------------------

    def transaction(self, hash_or_txid: str) -> Subscription:
        """Watch one transaction by hash (ethereum) or txid (bitcoin)."""
        self._check_destroyed()
        if not isinstance(hash_or_txid, str) or not hash_or_txid:
            raise BNCValidationError("A transaction hash or txid is required")

        intent = watch_transaction_intent(
            self._system, hash_or_txid, int(time.time() * 1000)
        )
        self._queue.enqueue(self._codec.encode(intent))

        emitter = Emitter()
        handle = self._registry.add_transaction(hash_or_txid, emitter)
        return Subscription(emitter=emitter, details=intent["transaction"], handle=handle)

    def account(self, address: str) -> Subscription:
        """Watch every transaction touching ``address``."""
        self._check_destroyed()
        if not isinstance(address, str) or not address:
            raise BNCValidationError("An account address is required")

        address = self._registry.normalize_address(address)
        self._queue.enqueue(self._codec.encode(watch_account_intent(address)))

        emitter = Emitter()
        handle = self._registry.add_account(address, emitter)
        return Subscription(emitter=emitter, details={"address": address}, handle=handle)

    def event(self, intent: dict[str, Any]) -> None:
        """Send a custom event such as a wallet interaction log."""
        self._check_destroyed()
        if not isinstance(intent, dict):
            raise BNCValidationError("event must be a dict")
        for key in ("categoryCode", "eventCode"):
            if not isinstance(intent.get(key), str) or not intent[key]:
                raise BNCValidationError(f"event is missing {key}")
        self._queue.enqueue(self._codec.encode(intent))

    def unsubscribe(self, target: WatchHandle | Subscription | str) -> None:
        """Stop watching.

        ``target`` is a handle or subscription (detaches that listener
        only) or an address / hash / txid (drops the entry entirely).
        The server is told to unwatch once no listener is left.
        """
        self._check_destroyed()
        if isinstance(target, Subscription):
            target = target.handle

        if isinstance(target, WatchHandle):
            key = target.key
            if not self._registry.remove(target):
                return
            kind = target.kind
        elif isinstance(target, str):
            entry = self._registry.discard(target)
            if entry is None:
                logger.debug("Unsubscribe: nothing watched for %s", target)
                return
            if isinstance(entry, WatchedAccount):
                key, kind = entry.address, WatchKind.ACCOUNT
            else:
                key, kind = entry.identifier, WatchKind.TRANSACTION
        else:
            raise BNCValidationError("unsubscribe needs a handle, address or hash")

        if kind == WatchKind.ACCOUNT:
            intent = unwatch_account_intent(key)
        else:
            intent = unwatch_transaction_intent(self._system, key)
        self._queue.enqueue(self._codec.encode(intent))

    # -- Stats ----------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        return {
            "state": self._session.state.value,
            "connection_id": self._session.connection_id,
            "reconnects": self._connection.reopen_count,
            "watched_transactions": len(self._registry.transactions),
            "watched_accounts": len(self._registry.accounts),
            "transaction_key": transaction_key(self._system),
            "queue": self._queue.get_stats(),
            "rate_limit": self._rate_limiter.get_stats(),
        }

    # -- Internal -------------------------------------------------------------

    def _check_destroyed(self) -> None:
        if self._session.destroyed:
            raise BNCConnectionError(
                "The WebSocket instance has been destroyed, "
                "re-initialize to continue making requests."
            )
