# =============================================================================
# BNC Python SDK -- Inbound Router
# =============================================================================
#
# Classifies each server frame and hands it to exactly one place:
# the rate limiter, the caller's error sink, or the listeners of the
# matching watched transaction / account plus the transaction handlers.
# =============================================================================

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Sequence

from ._logging import logger
from .constants import (
    HASH_CHANGE_EVENT_CODES,
    SERVER_ECHO_EVENT_CODES,
    UNSUBSCRIBED_STATUS,
)
from .errors import (
    BNCAuthError,
    BNCError,
    BNCInvalidAddressError,
    BNCInvalidTransactionError,
    BNCNetworkError,
    BNCQuotaError,
    BNCServerError,
)
from .protocol import InboundFrame, MessageCodec
from .types import (
    NO_MATCH,
    ErrorKind,
    RateLimitRule,
    System,
    TransactionHandler,
    TransactionState,
)

if TYPE_CHECKING:
    from .outbound_queue import OutboundQueue
    from .rate_limiter import RateLimiter
    from .registry import WatchRegistry
    from .session import Session

# Checked top to bottom, first substring found in the reason wins.  The
# order is part of the protocol: reasons can contain more than one of
# these phrases.
ERROR_CLASSIFICATION: tuple[tuple[str, ErrorKind], ...] = (
    ("ratelimit", ErrorKind.RATE_LIMIT),
    ("not a valid API key", ErrorKind.INVALID_API_KEY),
    ("network not supported", ErrorKind.UNSUPPORTED_NETWORK),
    ("maximum allowed amount", ErrorKind.QUOTA_EXCEEDED),
    ("invalid txid", ErrorKind.INVALID_TXID),
    ("invalid hash", ErrorKind.INVALID_HASH),
    ("invalid address", ErrorKind.INVALID_ADDRESS),
    ("not a valid Bitcoin", ErrorKind.INVALID_BITCOIN_ADDRESS),
    ("not a valid Ethereum", ErrorKind.INVALID_ETHEREUM_ADDRESS),
)

_ERROR_CLASSES: dict[ErrorKind, type[BNCServerError]] = {
    ErrorKind.INVALID_API_KEY: BNCAuthError,
    ErrorKind.UNSUPPORTED_NETWORK: BNCNetworkError,
    ErrorKind.QUOTA_EXCEEDED: BNCQuotaError,
    ErrorKind.INVALID_TXID: BNCInvalidTransactionError,
    ErrorKind.INVALID_HASH: BNCInvalidTransactionError,
    ErrorKind.INVALID_ADDRESS: BNCInvalidAddressError,
    ErrorKind.INVALID_BITCOIN_ADDRESS: BNCInvalidAddressError,
    ErrorKind.INVALID_ETHEREUM_ADDRESS: BNCInvalidAddressError,
}


def classify_error(reason: str | None) -> ErrorKind:
    reason = reason or ""
    for needle, kind in ERROR_CLASSIFICATION:
        if needle in reason:
            return kind
    return ErrorKind.OTHER


def build_server_error(
    kind: ErrorKind, reason: str, event: dict[str, Any] | None
) -> BNCServerError:
    """Structured error for a classified server reason."""
    event = event or {}
    transaction = event.get("transaction") or {}
    account = event.get("account") or {}
    cls = _ERROR_CLASSES.get(kind, BNCServerError)

    if kind == ErrorKind.INVALID_TXID:
        txid = transaction.get("txid")
        return cls(f"{txid} is an invalid txid", kind=kind, transaction=txid)
    if kind == ErrorKind.INVALID_HASH:
        tx_hash = transaction.get("hash")
        return cls(
            f"{tx_hash} is an invalid transaction hash", kind=kind, transaction=tx_hash
        )
    if kind == ErrorKind.INVALID_ADDRESS:
        address = account.get("address")
        return cls(f"{address} is an invalid address", kind=kind, account=address)
    if kind in (ErrorKind.INVALID_BITCOIN_ADDRESS, ErrorKind.INVALID_ETHEREUM_ADDRESS):
        return cls(reason, kind=kind, account=account.get("address"))
    return cls(reason, kind=kind)


class InboundRouter:
    """Dispatches decoded server frames.

    Args:
        system: Decides payload flattening and address normalization.
        session: Receives the server-assigned connection id.
        codec: Frame decoder.
        registry: Watched transactions and accounts.
        rate_limiter: Receives rate-limit rules and retry delays.
        queue: Takes back messages the server rejected for rate limiting.
        transaction_handlers: Called for every transaction event with
            ``(state, listener_result)``.
        on_error: Error sink.  Without one, server errors are raised
            out of :meth:`route`.
    """

    def __init__(
        self,
        *,
        system: System,
        session: Session,
        codec: MessageCodec,
        registry: WatchRegistry,
        rate_limiter: RateLimiter,
        queue: OutboundQueue,
        transaction_handlers: Sequence[TransactionHandler] = (),
        on_error: Callable[[BNCError], None] | None = None,
    ) -> None:
        self._system = System(system)
        self._session = session
        self._codec = codec
        self._registry = registry
        self._rate_limiter = rate_limiter
        self._queue = queue
        self._transaction_handlers = list(transaction_handlers)
        self._on_error = on_error

    def route(self, data: str | bytes) -> None:
        """Decode and dispatch one server frame."""
        frame = self._codec.decode(data)
        if frame is None:
            return

        if frame.connection_id:
            self._session.set_connection_id(frame.connection_id)

        if frame.is_error:
            self._handle_error(frame)
            return

        event = frame.event
        if isinstance(event, dict) and event.get("transaction"):
            self._handle_transaction(event)

    # -- Errors ---------------------------------------------------------------

    def _handle_error(self, frame: InboundFrame) -> None:
        reason = frame.reason or ""
        kind = classify_error(reason)

        if kind == ErrorKind.RATE_LIMIT:
            self._handle_rate_limit(frame)
            return

        err = build_server_error(kind, reason, frame.event)
        logger.debug("Server error [%s]: %s", kind.value, err.message)
        if self._on_error is not None:
            self._on_error(err)
        else:
            raise err

    def _handle_rate_limit(self, frame: InboundFrame) -> None:
        try:
            retry_ms = float(frame.retry_ms or 0)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed retryMs %r", frame.retry_ms)
            retry_ms = 0.0
        self._rate_limiter.install_retry_gate(retry_ms)

        if frame.limit_rules:
            try:
                rule = RateLimitRule.from_wire(frame.limit_rules)
            except ValueError as exc:
                logger.warning("Keeping current rate limit rule: %s", exc)
            else:
                self._rate_limiter.update(rule)
        if frame.blocked_msg:
            self._queue.requeue_front(self._codec.reencode(frame.blocked_msg))

    # -- Transaction events ---------------------------------------------------

    def _handle_transaction(self, event: dict[str, Any]) -> None:
        transaction: dict[str, Any] = event["transaction"]
        event_code = event.get("eventCode", "")
        state = TransactionState.from_event(
            transaction,
            event_code,
            contract_call=event.get("contractCall"),
            system=self._system,
        )

        if event_code in SERVER_ECHO_EVENT_CODES or state.status == UNSUBSCRIBED_STATUS:
            logger.debug("Ignoring %s for %s", event_code, state.identifier)
            return

        if event_code in HASH_CHANGE_EVENT_CODES:
            self._registry.reassign_transaction(state.original_hash, state.identifier)

        if state.watched_address:
            result = self._dispatch_account(state)
        else:
            result = self._dispatch_transaction(state)

        for handler in self._transaction_handlers:
            try:
                handler(state, result)
            except Exception:
                logger.exception("Transaction handler error for %s", event_code)

    def _dispatch_account(self, state: TransactionState) -> Any:
        account = self._registry.find_account(state.watched_address)
        if account is None:
            return NO_MATCH
        result: Any = NO_MATCH
        for listener in list(account.listeners):
            result = self._call_listener(listener, state)
        return result

    def _dispatch_transaction(self, state: TransactionState) -> Any:
        watched = self._registry.find_transaction(state.identifier)
        if watched is None:
            return NO_MATCH
        return self._call_listener(watched.listener, state)

    def _call_listener(
        self, listener: Callable[[TransactionState], Any], state: TransactionState
    ) -> Any:
        try:
            return listener(state)
        except Exception:
            logger.exception("Listener error for %s", state.event_code)
            return None
