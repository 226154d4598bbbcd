"""Named listener registry standing in for DOM event targets."""
from collections import defaultdict
from typing import Any, Callable, Dict, List

Listener = Callable[[Any], None]


class ListenerRegistry:
    """Registers callbacks per event name and dispatches payloads to them."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def add_listener(self, name: str, listener: Listener) -> None:
        if listener not in self._listeners[name]:
            self._listeners[name].append(listener)

    def remove_listener(self, name: str, listener: Listener) -> None:
        if listener in self._listeners[name]:
            self._listeners[name].remove(listener)

    def listener_count(self, name: str) -> int:
        return len(self._listeners[name])

    def dispatch(self, name: str, payload: Any = None) -> None:
        # Copy so listeners may unregister themselves while dispatching
        for listener in list(self._listeners[name]):
            listener(payload)
