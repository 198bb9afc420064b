# =============================================================================
# BNC Python SDK -- Per-Entity Event Emitter
# =============================================================================

from __future__ import annotations

from typing import Any, Callable

from .constants import EVENT_ALL
from .errors import BNCValidationError
from .types import TransactionEventKind, TransactionState

StateHandler = Callable[[TransactionState], Any]

VALID_EVENT_CODES = frozenset(
    {k.value for k in TransactionEventKind if k is not TransactionEventKind.UNKNOWN}
    | {EVENT_ALL}
)


class Emitter:
    """Routes the state of one watched entity to handlers by event code.

    Example::

        sub = client.transaction("0xabc...")

        @sub.emitter.on("txConfirmed")
        def confirmed(state):
            print(state.hash, "confirmed")
    """

    def __init__(self) -> None:
        self._handlers: dict[str, StateHandler] = {}

    def on(
        self, event_code: str, handler: StateHandler | None = None
    ) -> StateHandler | Callable[[StateHandler], StateHandler]:
        """Register ``handler`` for ``event_code`` (``"all"`` catches any).

        Can be used as a decorator when ``handler`` is omitted.
        """
        if event_code not in VALID_EVENT_CODES:
            raise BNCValidationError(f"{event_code} is not a valid event code")

        def decorator(fn: StateHandler) -> StateHandler:
            if not callable(fn):
                raise BNCValidationError("Listener must be callable")
            self._handlers[event_code] = fn
            return fn

        if handler is not None:
            return decorator(handler)
        return decorator

    def off(self, event_code: str) -> None:
        self._handlers.pop(event_code, None)

    def emit(self, state: TransactionState) -> Any:
        """Call the handler for ``state.event_code``, else the catch-all."""
        handler = self._handlers.get(state.event_code) or self._handlers.get(EVENT_ALL)
        if handler is None:
            return None
        return handler(state)

    __call__ = emit
