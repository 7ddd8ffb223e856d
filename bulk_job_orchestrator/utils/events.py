"""
Named notification channels.

Jobs, batches and record streams expose a small fixed set of ``Signal``
attributes instead of string-keyed events. Listeners run synchronously in the
order they were connected.
"""

import asyncio
import inspect
from typing import Any, Callable, List, Tuple

from .logger import get_logger

logger = get_logger(__name__)


class Signal:
    """An ordered list of listeners for one kind of notification."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Tuple[Callable[..., Any], bool]] = []

    def connect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register a listener. Returns it so the method can be used as a decorator."""
        self._listeners.append((listener, False))
        return listener

    def connect_once(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register a listener that is dropped after its first notification."""
        self._listeners.append((listener, True))
        return listener

    def disconnect(self, listener: Callable[..., Any]) -> None:
        self._listeners = [(l, once) for l, once in self._listeners if l is not listener]

    def emit(self, *args: Any) -> int:
        """
        Notify every listener.

        A listener returning an awaitable has it scheduled on the running loop.
        Listener exceptions are logged and do not stop delivery to the rest.

        Returns:
            Number of listeners notified
        """
        listeners = list(self._listeners)
        self._listeners = [(l, once) for l, once in self._listeners if not once]

        for listener, _ in listeners:
            try:
                outcome = listener(*args)
                if inspect.isawaitable(outcome):
                    asyncio.ensure_future(outcome)
            except Exception:
                logger.error("Listener raised while handling signal", exc_info=True, extra={
                    "signal": self.name,
                    "listener": getattr(listener, "__qualname__", repr(listener))
                })
        return len(listeners)

    def __len__(self) -> int:
        return len(self._listeners)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, listeners={len(self._listeners)})"
