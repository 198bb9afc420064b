# =============================================================================
# BNC Python SDK -- Client Options
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from .constants import (
    DEFAULT_API_URL,
    DEFAULT_NAME,
    DEFAULT_SYSTEM,
    PING_TIMEOUT,
    QUEUE_LIMIT,
)
from .errors import BNCError, BNCValidationError
from .types import (
    DEFAULT_RATE_LIMIT_RULE,
    RateLimitRule,
    ReconnectConfig,
    System,
    TransactionHandler,
)

if TYPE_CHECKING:
    from .connection import ConnectionListener
    from .session import SessionStore


@dataclass
class ClientOptions:
    """Validated settings for :class:`~bnc_sdk.client.BlocknativeClient`.

    Attributes:
        dapp_id: API key.
        network_id: Numeric network id, e.g. ``1`` for ethereum mainnet.
        system: ``"ethereum"`` or ``"bitcoin"``.
        name: Client name; together with ``dapp_id`` it keys the stored
            connection id.
        api_url: Websocket endpoint.
        transaction_handlers: Called with ``(state, listener_result)`` for
            every transaction event.
        listener: Connection lifecycle callbacks.
        on_error: Error sink.  Without one, server errors are raised.
        reconnect: Transport backoff settings.
        session_store: Where the connection id is kept between clients.
        queue_limit: Capacity of the outbound queue.
        ping_timeout: Seconds without a server ping before reconnecting.
        rate_limit: Rule used until the server sends another one.
    """

    dapp_id: str
    network_id: int
    system: System = System(DEFAULT_SYSTEM)
    name: str = DEFAULT_NAME
    api_url: str = DEFAULT_API_URL
    transaction_handlers: list[TransactionHandler] = field(default_factory=list)
    listener: ConnectionListener | None = None
    on_error: Callable[[BNCError], None] | None = None
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    session_store: SessionStore | None = None
    queue_limit: int = QUEUE_LIMIT
    ping_timeout: float = PING_TIMEOUT
    rate_limit: RateLimitRule = DEFAULT_RATE_LIMIT_RULE

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.dapp_id, str) or not self.dapp_id:
            raise BNCValidationError("dapp_id is required and must be a string")
        if isinstance(self.network_id, bool) or not isinstance(self.network_id, int):
            raise BNCValidationError("network_id is required and must be an integer")
        try:
            self.system = System(self.system)
        except ValueError:
            valid = ", ".join(s.value for s in System)
            raise BNCValidationError(
                f"system must be one of: {valid}, got {self.system!r}"
            ) from None
        if not isinstance(self.name, str):
            raise BNCValidationError("name must be a string")
        if not isinstance(self.api_url, str) or not self.api_url.startswith(
            ("ws://", "wss://")
        ):
            raise BNCValidationError("api_url must be a ws:// or wss:// URL")

        self.transaction_handlers = list(self.transaction_handlers)
        for handler in self.transaction_handlers:
            if not callable(handler):
                raise BNCValidationError("transaction_handlers must be callables")
        if self.on_error is not None and not callable(self.on_error):
            raise BNCValidationError("on_error must be callable")
        if self.listener is not None:
            for hook in ("on_open", "on_down", "on_reopen", "on_close"):
                if not callable(getattr(self.listener, hook, None)):
                    raise BNCValidationError(f"listener is missing {hook}()")
        if self.session_store is not None:
            for method in ("get", "set"):
                if not callable(getattr(self.session_store, method, None)):
                    raise BNCValidationError(f"session_store is missing {method}()")

        if self.queue_limit <= 0:
            raise BNCValidationError("queue_limit must be positive")
        if self.ping_timeout <= 0:
            raise BNCValidationError("ping_timeout must be positive")
        if self.rate_limit.points <= 0 or self.rate_limit.duration < 0:
            raise BNCValidationError("rate_limit must allow at least one message")
