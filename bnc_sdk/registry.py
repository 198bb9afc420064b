# =============================================================================
# BNC Python SDK -- Watch Registry
# =============================================================================
#
# Transactions and addresses the caller is interested in, with the
# listener(s) attached to each.  Entries are mutated in place so that
# handles held by the caller stay valid across hash reassignment.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field

from ._logging import logger
from .types import Listener, System, WatchKind


@dataclass(eq=False, slots=True)
class WatchedTransaction:
    identifier: str
    listener: Listener


@dataclass(eq=False, slots=True)
class WatchedAccount:
    address: str
    listeners: list[Listener] = field(default_factory=list)


@dataclass(frozen=True, eq=False, slots=True)
class WatchHandle:
    """Returned by the ``add_*`` methods; pass to :meth:`WatchRegistry.remove`."""

    kind: WatchKind
    entry: WatchedTransaction | WatchedAccount
    listener: Listener

    @property
    def key(self) -> str:
        """Current identifier or address of the watched entity."""
        if isinstance(self.entry, WatchedTransaction):
            return self.entry.identifier
        return self.entry.address


class WatchRegistry:
    """Watched transactions (one listener each) and accounts (many).

    Args:
        system: Decides address normalization; ethereum addresses are
            compared lowercased, bitcoin addresses verbatim.
    """

    def __init__(self, system: System = System.ETHEREUM) -> None:
        self._system = System(system)
        self._transactions: list[WatchedTransaction] = []
        self._accounts: dict[str, WatchedAccount] = {}

    # -- Properties -----------------------------------------------------------

    @property
    def transactions(self) -> tuple[WatchedTransaction, ...]:
        return tuple(self._transactions)

    @property
    def accounts(self) -> tuple[WatchedAccount, ...]:
        """Watched accounts in the order they were first added."""
        return tuple(self._accounts.values())

    def __len__(self) -> int:
        return len(self._transactions) + len(self._accounts)

    def normalize_address(self, address: str) -> str:
        if self._system == System.ETHEREUM:
            return address.lower()
        return address

    # -- Add / Remove ---------------------------------------------------------

    def add_transaction(self, identifier: str, listener: Listener) -> WatchHandle:
        entry = WatchedTransaction(identifier=identifier, listener=listener)
        self._transactions.append(entry)
        return WatchHandle(WatchKind.TRANSACTION, entry, listener)

    def add_account(self, address: str, listener: Listener) -> WatchHandle:
        address = self.normalize_address(address)
        entry = self._accounts.get(address)
        if entry is None:
            entry = WatchedAccount(address=address)
            self._accounts[address] = entry
        entry.listeners.append(listener)
        return WatchHandle(WatchKind.ACCOUNT, entry, listener)

    def remove(self, handle: WatchHandle) -> bool:
        """Detach the handle's listener.

        Returns True when the watched entry itself is gone as a result,
        i.e. the server no longer needs to watch it for us.
        """
        entry = handle.entry
        if isinstance(entry, WatchedTransaction):
            for i, tx in enumerate(self._transactions):
                if tx is entry:
                    del self._transactions[i]
                    return True
            return False

        if self._accounts.get(entry.address) is not entry:
            return False
        for i, listener in enumerate(entry.listeners):
            if listener is handle.listener:
                del entry.listeners[i]
                break
        else:
            return False
        if not entry.listeners:
            del self._accounts[entry.address]
            return True
        return False

    def discard(self, key: str) -> WatchedTransaction | WatchedAccount | None:
        """Drop every entry watching ``key`` (identifier or address).

        Returns one of the removed entries so the caller knows which
        kind of unwatch to send, or ``None`` when nothing matched.
        """
        removed: WatchedTransaction | WatchedAccount | None = None
        kept = [tx for tx in self._transactions if tx.identifier != key]
        if len(kept) != len(self._transactions):
            removed = next(tx for tx in self._transactions if tx.identifier == key)
            self._transactions = kept
        account = self._accounts.pop(self.normalize_address(key), None)
        return account or removed

    def clear(self) -> None:
        self._transactions.clear()
        self._accounts.clear()

    # -- Lookup ---------------------------------------------------------------

    def find_transaction(self, identifier: str | None) -> WatchedTransaction | None:
        if identifier is None:
            return None
        for tx in self._transactions:
            if tx.identifier == identifier:
                return tx
        return None

    def find_account(self, address: str | None) -> WatchedAccount | None:
        if address is None:
            return None
        return self._accounts.get(self.normalize_address(address))

    def reassign_transaction(self, original: str | None, new: str | None) -> int:
        """Rename watched transactions in place, returns how many changed."""
        if not original or not new:
            return 0
        changed = 0
        for tx in self._transactions:
            if tx.identifier == original:
                tx.identifier = new
                changed += 1
        if changed:
            logger.debug("Watched transaction %s now tracked as %s", original, new)
        return changed
