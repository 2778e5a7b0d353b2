from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Protocol

CLEAR_STATUS = "\x1b[1A\x1b[K"


class StatusSink(Protocol):
    def write(self, text: str) -> None: ...

    def write_line(self, text: str) -> None: ...

    def clear_status(self) -> None: ...

    def rewrite_last_line(self, text: str) -> None: ...

    def flush(self) -> None: ...


class TerminalStatusSink:
    """Writes report text to a stream, erasing the status line in place.

    The status line is always the last line written, so clearing it means
    moving the cursor up one line and erasing that line.
    """

    def __init__(self, stream: Any) -> None:
        self.stream = stream

    def write(self, text: str) -> None:
        if text:
            self.stream.write(text)

    def write_line(self, text: str) -> None:
        self.stream.write(text + "\n")

    def clear_status(self) -> None:
        self.stream.write(CLEAR_STATUS)

    def rewrite_last_line(self, text: str) -> None:
        self.clear_status()
        self.write_line(text)

    def flush(self) -> None:
        flush = getattr(self.stream, "flush", None)
        if flush is not None:
            flush()


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class ProgressTicker:
    """Re-renders the status line on a timer until stopped.

    First render after ``delay`` seconds, then every ``interval`` seconds.
    ``stop`` cancels the pending timer exactly once; a callback that already
    fired but has not yet taken ``lock`` renders nothing afterwards.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        render: Callable[[], None],
        delay: float = 0.25,
        interval: float = 0.1,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.scheduler = scheduler
        self.render = render
        self.delay = delay
        self.interval = interval
        self.lock = lock if lock is not None else threading.RLock()
        self.active = False
        self.ticks = 0
        self._handle: Optional[Cancellable] = None

    def start(self) -> None:
        with self.lock:
            if self.active:
                return
            self.active = True
            self._handle = self.scheduler.call_later(self.delay, self._tick)

    def stop(self) -> bool:
        """Cancel the ticker. Returns False if it was not running."""
        with self.lock:
            if not self.active:
                return False
            self.active = False
            handle, self._handle = self._handle, None
            if handle is not None:
                handle.cancel()
            return True

    def _tick(self) -> None:
        with self.lock:
            if not self.active:
                return
            self.ticks += 1
            self.render()
            self._handle = self.scheduler.call_later(self.interval, self._tick)
