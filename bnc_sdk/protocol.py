# =============================================================================
# BNC Python SDK -- Wire Protocol Codec
# =============================================================================
#
# Outgoing (client -> server):
#   {"timeStamp", "dappId", "version", "blockchain": {"system", "network"},
#    "categoryCode", "eventCode", ...intent fields}
#
# Incoming (server -> client):
#   {"status"?, "reason"?, "connectionId"?, "retryMs"?, "limitRules"?,
#    "blockedMsg"?, "event"?: {"eventCode", "contractCall"?,
#    "transaction"?, "account"?}}
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import orjson

from ._logging import logger
from ._version import __version__
from .constants import (
    CATEGORY_ACCOUNT_ADDRESS,
    CATEGORY_ACTIVE_TRANSACTION,
    CATEGORY_INITIALIZE,
    EVENT_CHECK_DAPP_ID,
    EVENT_TX_SENT,
    EVENT_UNWATCH,
    EVENT_WATCH,
    LOCAL_NETWORK,
    MAX_MESSAGE_SIZE,
    network_name,
)
from .types import System


@dataclass(frozen=True, slots=True)
class InboundFrame:
    """A decoded server frame."""

    status: str | None = None
    reason: str | None = None
    event: dict[str, Any] | None = None
    connection_id: str | None = None
    retry_ms: float | None = None
    limit_rules: dict[str, Any] | None = None
    blocked_msg: Any = None

    @property
    def is_error(self) -> bool:
        return self.status == "error"


class MessageCodec:
    """Encode outbound intents into envelopes and decode server frames.

    Args:
        dapp_id: API key sent with every envelope.
        system: Blockchain family.
        network_id: Numeric network id, mapped to the server name.
    """

    def __init__(self, dapp_id: str, system: System, network_id: int) -> None:
        self._dapp_id = dapp_id
        self._system = System(system)
        self._network = network_name(self._system.value, network_id) or LOCAL_NETWORK

    @property
    def network(self) -> str:
        return self._network

    def encode(self, intent: dict[str, Any]) -> str:
        """Wrap ``intent`` in the envelope and serialize it."""
        message: dict[str, Any] = {
            "timeStamp": _timestamp(),
            "dappId": self._dapp_id,
            "version": __version__,
            "blockchain": {
                "system": self._system.value,
                "network": self._network,
            },
        }
        message.update(intent)
        return orjson.dumps(message).decode()

    def decode(self, data: str | bytes) -> InboundFrame | None:
        """Parse a server frame, ``None`` if it is not a JSON object."""
        if len(data) > MAX_MESSAGE_SIZE:
            logger.warning("Message exceeds max size (%d bytes), dropping", len(data))
            return None
        try:
            parsed = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            logger.warning("Failed to parse server frame: %s", e)
            return None
        if not isinstance(parsed, dict):
            logger.warning("Unexpected server frame type %s", type(parsed).__name__)
            return None

        return InboundFrame(
            status=parsed.get("status"),
            reason=parsed.get("reason"),
            event=parsed.get("event"),
            connection_id=parsed.get("connectionId"),
            retry_ms=parsed.get("retryMs"),
            limit_rules=parsed.get("limitRules"),
            blocked_msg=parsed.get("blockedMsg"),
        )

    def reencode(self, blocked: Any) -> str:
        """Serialized form of a message the server bounced back to us."""
        if isinstance(blocked, str):
            return blocked
        if isinstance(blocked, bytes):
            return blocked.decode("utf-8")
        return orjson.dumps(blocked).decode()


def _timestamp() -> str:
    now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# -- Intents -------------------------------------------------------------------


def initialize_intent(connection_id: str | None) -> dict[str, Any]:
    intent: dict[str, Any] = {
        "categoryCode": CATEGORY_INITIALIZE,
        "eventCode": EVENT_CHECK_DAPP_ID,
    }
    if connection_id is not None:
        intent["connectionId"] = connection_id
    return intent


def watch_account_intent(address: str) -> dict[str, Any]:
    return {
        "categoryCode": CATEGORY_ACCOUNT_ADDRESS,
        "eventCode": EVENT_WATCH,
        "account": {"address": address},
    }


def unwatch_account_intent(address: str) -> dict[str, Any]:
    return {
        "categoryCode": CATEGORY_ACCOUNT_ADDRESS,
        "eventCode": EVENT_UNWATCH,
        "account": {"address": address},
    }


def transaction_key(system: System) -> str:
    """Field name that identifies a transaction on ``system``."""
    return "hash" if system == System.ETHEREUM else "txid"


def watch_transaction_intent(
    system: System, identifier: str, start_time: int
) -> dict[str, Any]:
    return {
        "categoryCode": CATEGORY_ACTIVE_TRANSACTION,
        "eventCode": EVENT_TX_SENT,
        "transaction": {
            transaction_key(system): identifier,
            "id": identifier,
            "startTime": start_time,
            "status": "sent",
        },
    }


def unwatch_transaction_intent(system: System, identifier: str) -> dict[str, Any]:
    return {
        "categoryCode": CATEGORY_ACTIVE_TRANSACTION,
        "eventCode": EVENT_UNWATCH,
        "transaction": {transaction_key(system): identifier},
    }
