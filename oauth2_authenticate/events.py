"""
Lifecycle events of the authentication flow.

Listeners are plain callables registered per event name. A listener's
non-None return value becomes the event result; later listeners see it and
may replace it.
"""

from typing import Any, Callable, Dict, List, Optional
import logging


AFTER_IDENTIFY = 'Muffin/OAuth2.afterIdentify'
NEW_USER = 'Muffin/OAuth2.newUser'


class Event:
    """A single dispatched event."""

    def __init__(self, name: str, args: tuple):
        self.name = name
        self.args = args
        self.result: Optional[Any] = None
        self.stopped = False

    def stop_propagation(self) -> None:
        self.stopped = True

    def __repr__(self) -> str:
        return f"Event(name='{self.name}', result={self.result!r}, stopped={self.stopped})"


class EventManager:
    """Registry of listeners keyed by event name."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = logging.getLogger(__name__)

    def on(self, name: str, listener: Optional[Callable[..., Any]] = None) -> Callable[..., Any]:
        """
        Register a listener for an event.

        Without ``listener`` a decorator is returned, so ``@events.on(NEW_USER)``
        registers the decorated function.
        """
        if listener is None:
            return lambda func: self.on(name, func)

        self._listeners.setdefault(name, []).append(listener)
        return listener

    def off(self, name: str, listener: Optional[Callable[..., Any]] = None) -> None:
        """Remove one listener, or every listener of an event."""
        if listener is None:
            self._listeners.pop(name, None)
            return
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, name: str) -> List[Callable[..., Any]]:
        return list(self._listeners.get(name, []))

    def has_listeners(self, name: str) -> bool:
        return bool(self._listeners.get(name))

    def dispatch(self, name: str, *args: Any) -> Event:
        """
        Call every listener of ``name`` with ``(event, *args)``.

        Listener exceptions propagate to the caller.

        Returns:
            The dispatched Event
        """
        event = Event(name, args)
        for listener in self.listeners(name):
            result = listener(event, *args)
            if result is not None:
                event.result = result
            if event.stopped:
                break

        self.logger.debug(f"Dispatched {name} to {len(self._listeners.get(name, []))} listener(s)")
        return event
