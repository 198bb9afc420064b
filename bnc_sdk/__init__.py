"""Python client for the Blocknative transaction-monitoring stream.

Usage::

    from bnc_sdk import BlocknativeClient

    async with BlocknativeClient("your-api-key", network_id=1) as client:
        sub = client.transaction("0x5c1c...")

        @sub.emitter.on("txConfirmed")
        def confirmed(state):
            print(state.hash, "confirmed")

        await client.wait_closed()

Watching an address::

    sub = client.account("0xAbC...")
    sub.emitter.on("all", lambda state: print(state.kind, state.hash))
    ...
    client.unsubscribe(sub)
"""

from ._version import __version__
from .client import BlocknativeClient, Subscription
from .config import ClientOptions
from .connection import ConnectionListener
from .emitter import Emitter
from .errors import (
    BNCAuthError,
    BNCCapacityError,
    BNCConnectionError,
    BNCError,
    BNCInvalidAddressError,
    BNCInvalidTransactionError,
    BNCNetworkError,
    BNCQuotaError,
    BNCServerError,
    BNCTransportError,
    BNCValidationError,
)
from .registry import WatchHandle
from .session import InMemorySessionStore, SessionStore
from .types import (
    NO_MATCH,
    CloseInfo,
    ConnectionState,
    ErrorKind,
    RateLimitRule,
    ReconnectConfig,
    ReconnectMode,
    System,
    TransactionEventKind,
    TransactionState,
)

__all__ = [
    "__version__",
    "BlocknativeClient",
    "Subscription",
    "ClientOptions",
    "ConnectionListener",
    "Emitter",
    "WatchHandle",
    "SessionStore",
    "InMemorySessionStore",
    "NO_MATCH",
    "CloseInfo",
    "ConnectionState",
    "ErrorKind",
    "RateLimitRule",
    "ReconnectConfig",
    "ReconnectMode",
    "System",
    "TransactionEventKind",
    "TransactionState",
    "BNCError",
    "BNCValidationError",
    "BNCConnectionError",
    "BNCCapacityError",
    "BNCTransportError",
    "BNCServerError",
    "BNCAuthError",
    "BNCNetworkError",
    "BNCQuotaError",
    "BNCInvalidTransactionError",
    "BNCInvalidAddressError",
]
