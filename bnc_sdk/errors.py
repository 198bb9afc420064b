# =============================================================================
# BNC Python SDK -- Error Types
# =============================================================================

from __future__ import annotations

from typing import Any

from .types import ErrorKind


class BNCError(Exception):
    """Base exception for all BNC client errors."""


class BNCValidationError(BNCError):
    """Invalid client options or arguments."""


class BNCConnectionError(BNCError):
    """The client has been destroyed or cannot reach the server."""


class BNCCapacityError(BNCError):
    """The outbound queue is full."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Queue limit of {limit} messages has been reached.")


class BNCTransportError(BNCError):
    """Error reported by the underlying websocket."""

    def __init__(self, message: str, error: BaseException | None = None) -> None:
        self.message = message
        self.error = error
        super().__init__(message)


class BNCServerError(BNCError):
    """Error frame sent by the server.

    Attributes:
        message: Human readable message.
        kind: Classification of the server reason.
        transaction: Offending transaction hash or txid, if any.
        account: Offending address, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.OTHER,
        transaction: str | None = None,
        account: str | None = None,
    ) -> None:
        self.message = message
        self.kind = kind
        self.transaction = transaction
        self.account = account
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message}
        if self.transaction is not None:
            data["transaction"] = self.transaction
        if self.account is not None:
            data["account"] = self.account
        return data


class BNCAuthError(BNCServerError):
    """The API key was rejected."""


class BNCNetworkError(BNCServerError):
    """The requested network is not supported."""


class BNCQuotaError(BNCServerError):
    """The account exceeded its allowed amount of watched entities."""


class BNCInvalidTransactionError(BNCServerError):
    """A transaction hash or txid was rejected."""


class BNCInvalidAddressError(BNCServerError):
    """An account address was rejected."""
