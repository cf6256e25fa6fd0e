"""Push event routing."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ACCOUNT_CHANGE = "ACCOUNT_CHANGE"
NODE_CHANGE = "NODE_CHANGE"
NETWORK_CHANGE = "NETWORK_CHANGE"
TX_STATUS = "TX_STATUS"

EventHandler = Callable[[Any], Any]


class EventRouter:
    """Map event names to ordered handler lists and dispatch push events."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}

    def add_event_handler(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def remove_event_handler(self, event: str, handler: EventHandler) -> bool:
        """Remove the first registration of ``handler`` for ``event``.

        Returns ``True`` when a handler was removed. Other handlers of the same
        event are left in place; use :meth:`clear_event_handlers` to drop them all.
        """

        handlers = self._handlers.get(event)
        if not handlers:
            return False
        for index, registered in enumerate(handlers):
            if registered is handler:
                del handlers[index]
                if not handlers:
                    del self._handlers[event]
                return True
        return False

    remove_event_listener = remove_event_handler

    def clear_event_handlers(self, event: str) -> None:
        if not event:
            return
        self._handlers.pop(event, None)

    def handlers(self, event: str) -> List[EventHandler]:
        return list(self._handlers.get(event, ()))

    def dispatch(self, event: str, payload: Any) -> int:
        """Invoke every handler of ``event`` in registration order.

        Handlers registered or removed during dispatch take effect from the next
        event. Returns the number of handlers invoked.
        """

        handlers = self.handlers(event)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for event %s failed", event)
        return len(handlers)
