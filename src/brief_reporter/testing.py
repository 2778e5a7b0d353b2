from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .reporter import BriefReporter, create

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


@dataclass
class ManualHandle:
    callback: Callable[[], None]
    delay: float
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Scheduler that only fires callbacks when told to."""

    handles: List[ManualHandle] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        h = ManualHandle(callback=callback, delay=delay)
        self.handles.append(h)
        return h

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_next(self) -> bool:
        pending = self.pending
        if not pending:
            return False
        h = pending[0]
        h.fired = True
        h.callback()
        return True


def env_payload(uuid: str = "env-1", description: str = "Firefox 120 on Linux") -> Dict[str, Any]:
    return {"uuid": uuid, "description": description}


def error_payload(
    name: str = "TypeError",
    message: str = "x is undefined",
    stack: Optional[str] = "at f (lib/app.js:10:3)\nat g (lib/app.js:20:1)",
    source: Optional[str] = None,
) -> Dict[str, Any]:
    return {"name": name, "message": message, "stack": stack, "source": source}


def make_reporter(**options: Any) -> Tuple[BriefReporter, io.StringIO, ManualScheduler]:
    """Reporter writing to a StringIO, with a manual ticker scheduler."""
    stream = io.StringIO()
    scheduler = ManualScheduler()
    options.setdefault("output_stream", stream)
    reporter = create(scheduler=scheduler, **options)
    return reporter, stream, scheduler


def run_test(
    reporter: BriefReporter,
    name: str,
    outcome: str = "success",
    env: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    logs: Tuple[Tuple[str, str], ...] = (),
) -> None:
    """Feed setUp, logs, tearDown and then the outcome event for one test."""
    env = env or env_payload()
    reporter.receive("test:setUp", {"environment": env, "name": name})
    for level, message in logs:
        reporter.receive("log", {"environment": env, "level": level, "message": message})
    reporter.receive("test:tearDown", {"environment": env, "name": name})
    payload: Dict[str, Any] = {"environment": env, "name": name}
    if error is not None:
        payload["error"] = error
    reporter.receive(f"test:{outcome}", payload)
