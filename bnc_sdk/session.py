# =============================================================================
# BNC Python SDK -- Session State
# =============================================================================
#
# Connection state and server-assigned connection id shared by the
# connection manager, the inbound router and the outbound drain task.
# All of them run on one event loop, so plain attributes are enough.
# =============================================================================

from __future__ import annotations

import asyncio
import hashlib
from typing import Protocol

from ._logging import logger
from .types import ConnectionState


class SessionStore(Protocol):
    """Key/value storage for the connection id across client instances."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemorySessionStore:
    """Process-local :class:`SessionStore`."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def storage_key(dapp_id: str, name: str) -> str:
    """Stable store key for a ``(dapp_id, name)`` pair."""
    return hashlib.sha1(f"{dapp_id} - {name}".encode()).hexdigest()


class Session:
    """Connection-scoped state owned by one client.

    Args:
        dapp_id: API key, part of the store key.
        name: Caller-chosen client name, part of the store key.
        store: Where the connection id is persisted; in-memory if omitted.
    """

    def __init__(
        self,
        dapp_id: str,
        name: str,
        store: SessionStore | None = None,
    ) -> None:
        self._store = store if store is not None else InMemorySessionStore()
        self._key = storage_key(dapp_id, name)
        self._connection_id = self._store.get(self._key)
        self._state = ConnectionState.DISCONNECTED
        self._connected = asyncio.Event()
        self._destroyed = False

    # -- Properties -----------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and not self._destroyed

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # -- Mutators -------------------------------------------------------------

    def set_connection_id(self, connection_id: str) -> None:
        if connection_id != self._connection_id:
            logger.debug("Connection id: %s", connection_id)
        self._store.set(self._key, connection_id)
        self._connection_id = connection_id

    def mark_connected(self) -> None:
        self._set_state(ConnectionState.CONNECTED)
        self._connected.set()

    def mark_disconnected(self) -> None:
        self._set_state(ConnectionState.DISCONNECTED)
        if not self._destroyed:
            self._connected.clear()

    def mark_destroyed(self) -> None:
        self._destroyed = True
        self._set_state(ConnectionState.DISCONNECTED)
        # release anyone in wait_connected() so they can observe destroyed
        self._connected.set()

    async def wait_connected(self) -> None:
        """Return once connected, or immediately after destruction."""
        await self._connected.wait()

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
