from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Optional

Listener = Callable[[Any], None]


class EventEmitter:
    """Named-event publisher with the ``on``/``emit`` shape reporters expect.

    Listeners run synchronously, in subscription order, on the emitting
    thread. ``console`` optionally holds a second emitter for ``log`` events.
    """

    def __init__(self, console: Optional["EventEmitter"] = None) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self.console = console

    def on(self, name: str, listener: Listener) -> None:
        self._listeners[name].append(listener)

    def emit(self, name: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(name, ())):
            listener(payload)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, ()))
