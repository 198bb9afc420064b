# =============================================================================
# BNC Python SDK -- Type Definitions
# =============================================================================

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .constants import (
    DEFAULT_RATE_LIMIT_DURATION,
    DEFAULT_RATE_LIMIT_POINTS,
    RECONNECT_BASE_DELAY,
    RECONNECT_FACTOR,
    RECONNECT_MAX_ATTEMPTS,
    RECONNECT_MAX_DELAY,
)


class System(str, Enum):
    """Blockchain family the client talks about.

    Ethereum addresses are case-insensitive and transactions are keyed
    by ``hash``; bitcoin addresses are case-sensitive and transactions
    are keyed by ``txid``.
    """

    ETHEREUM = "ethereum"
    BITCOIN = "bitcoin"


class ConnectionState(str, Enum):
    """Visible connection state of the client."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ErrorKind(str, Enum):
    """Classification of a server ``status: "error"`` frame."""

    RATE_LIMIT = "rate_limit"
    INVALID_API_KEY = "invalid_api_key"
    UNSUPPORTED_NETWORK = "unsupported_network"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_TXID = "invalid_txid"
    INVALID_HASH = "invalid_hash"
    INVALID_ADDRESS = "invalid_address"
    INVALID_BITCOIN_ADDRESS = "invalid_bitcoin_address"
    INVALID_ETHEREUM_ADDRESS = "invalid_ethereum_address"
    OTHER = "other"


class TransactionEventKind(str, Enum):
    """Tag of a :class:`TransactionState`, one per server event code."""

    SENT = "txSent"
    POOL = "txPool"
    POOL_SIMULATION = "txPoolSimulation"
    CONFIRMED = "txConfirmed"
    SPEEDUP = "txSpeedUp"
    CANCEL = "txCancel"
    FAILED = "txFailed"
    DROPPED = "txDropped"
    STUCK = "txStuck"
    REQUEST = "txRequest"
    NSF_FAIL = "nsfFail"
    REPEAT = "txRepeat"
    AWAITING_APPROVAL = "txAwaitingApproval"
    CONFIRM_REMINDER = "txConfirmReminder"
    SEND_FAIL = "txSendFail"
    ERROR = "txError"
    UNDERPRICED = "txUnderPriced"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: str | None) -> TransactionEventKind:
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class WatchKind(str, Enum):
    TRANSACTION = "transaction"
    ACCOUNT = "account"


class _NoMatch:
    """Listener result passed to transaction handlers when nothing matched."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_MATCH"

    def __bool__(self) -> bool:
        return False


NO_MATCH: Any = _NoMatch()


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    """``points`` messages may be sent per ``duration`` seconds."""

    points: float = DEFAULT_RATE_LIMIT_POINTS
    duration: float = DEFAULT_RATE_LIMIT_DURATION

    @property
    def delay(self) -> float:
        """Seconds to wait before each message."""
        return self.duration / self.points

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> RateLimitRule:
        """Rule from a server ``limitRules`` object.

        Raises:
            ValueError: ``data`` is not a usable rule.
        """
        try:
            points = float(data["points"])
            duration = float(data["duration"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"malformed limitRules {data!r}") from exc
        if not (math.isfinite(points) and math.isfinite(duration)):
            raise ValueError(f"non-finite limitRules {data!r}")
        if points <= 0 or duration < 0:
            raise ValueError(f"limitRules out of range {data!r}")
        return cls(points=points, duration=duration)


DEFAULT_RATE_LIMIT_RULE = RateLimitRule()


@dataclass(frozen=True, slots=True)
class CloseInfo:
    """Close code and reason of a dropped websocket."""

    code: int
    reason: str = ""


@dataclass(frozen=True, slots=True)
class TransactionState:
    """A transaction event flattened into one record.

    Attributes:
        kind: Tag derived from ``event_code``.
        event_code: Raw ``eventCode`` from the server.
        hash: Transaction hash (ethereum).
        txid: Transaction id (bitcoin).
        status: Server status, e.g. ``"pending"``, ``"confirmed"``.
        watched_address: Address that caused the notification, when the
            event was produced by an account watch.
        original_hash: Previous hash on speed-up / cancel events.
        contract_call: Decoded contract call (ethereum only).
        fields: The full flattened record as received.
    """

    kind: TransactionEventKind
    event_code: str
    hash: str | None = None
    txid: str | None = None
    status: str | None = None
    watched_address: str | None = None
    original_hash: str | None = None
    contract_call: dict[str, Any] | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def identifier(self) -> str | None:
        """Hash on hash-keyed systems, txid otherwise."""
        return self.hash or self.txid

    @classmethod
    def from_event(
        cls,
        transaction: dict[str, Any],
        event_code: str,
        *,
        contract_call: dict[str, Any] | None = None,
        system: System = System.ETHEREUM,
    ) -> TransactionState:
        flat = {**transaction, "eventCode": event_code}
        if system == System.ETHEREUM:
            flat["contractCall"] = contract_call
        else:
            contract_call = None
        return cls(
            kind=TransactionEventKind.from_code(event_code),
            event_code=event_code,
            hash=transaction.get("hash"),
            txid=transaction.get("txid"),
            status=transaction.get("status"),
            watched_address=transaction.get("watchedAddress"),
            original_hash=transaction.get("originalHash"),
            contract_call=contract_call,
            fields=flat,
        )


class ReconnectMode(str, Enum):
    """Backoff strategy for auto-reconnection after a connection drop."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIBONACCI = "fibonacci"


@dataclass
class ReconnectConfig:
    """Configuration for automatic reconnection of the transport.

    Attributes:
        mode: Backoff strategy (default: exponential).
        base_delay: Initial delay in seconds before first retry.
        max_delay: Maximum delay cap in seconds.
        max_attempts: Max retries in a row, ``-1`` for infinite.
        factor: Multiplier per attempt for exponential backoff.
        jitter: Randomize delays to avoid thundering herd.
    """

    mode: ReconnectMode = ReconnectMode.EXPONENTIAL
    base_delay: float = RECONNECT_BASE_DELAY
    max_delay: float = RECONNECT_MAX_DELAY
    max_attempts: int = RECONNECT_MAX_ATTEMPTS
    factor: float = RECONNECT_FACTOR
    jitter: bool = True


# Listener attached to a watched transaction or account; its return value
# is handed on to the transaction handlers.
Listener = Callable[[TransactionState], Any]

# Generic transaction handler: ``(state, listener_result)``.
TransactionHandler = Callable[[TransactionState, Any], None]
