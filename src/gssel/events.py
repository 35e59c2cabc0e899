"""
Synchronous observer bus used to propagate state-change notifications.

Handlers run in registration order on the caller's thread. Exceptions raised
by a handler propagate to whoever fired the event.

Events fired by gssel:
    state.changed          (store)     per-point state bytes were modified
    selection.changed      (store)     a different point set became active
    panel.toggle           ()          data panel visibility toggled
    viewlist.updated       ()          a view was removed or the list cleared
    histogram.updated      (result)    the explorer rebuilt its histogram
    segmentation.changed   (state)     the segmentation session changed state
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Events:
    """
    Named event registry with fire-and-forget events and request functions.

    Example:
        >>> events = Events()
        >>> events.on("state.changed", lambda store: print(store.num_selected))
        >>> events.fire("state.changed", store)
        >>>
        >>> events.function("selection", lambda: store)
        >>> events.invoke("selection") is store
        True
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._functions: dict[str, Handler] = {}

    def on(self, name: str, handler: Handler) -> Handler:
        """Register handler for name and return it (usable as a decorator target)."""
        self._handlers[name].append(handler)
        logger.debug("[Events] Handler registered for '%s'", name)
        return handler

    def off(self, name: str, handler: Handler) -> None:
        """Unregister handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def fire(self, name: str, *args: Any) -> None:
        """Call every handler registered for name with args."""
        # Copy so handlers may unregister themselves while firing
        for handler in list(self._handlers.get(name, ())):
            handler(*args)

    def function(self, name: str, fn: Handler) -> None:
        """Register the single provider for a request-style call."""
        if name in self._functions:
            raise ValueError(f"Function '{name}' is already registered")
        self._functions[name] = fn

    def invoke(self, name: str, *args: Any) -> Any:
        """Call the provider registered under name. Returns None if there is none."""
        fn = self._functions.get(name)
        if fn is None:
            logger.debug("[Events] No function registered for '%s'", name)
            return None
        return fn(*args)

    def __contains__(self, name: str) -> bool:
        return bool(self._handlers.get(name)) or name in self._functions

    def __repr__(self) -> str:
        n_handlers = sum(len(h) for h in self._handlers.values())
        return f"Events({n_handlers} handlers, {len(self._functions)} functions)"
