from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class StackFilter:
    """Trim noise from stack traces.

    Drops frames whose line contains any of ``patterns`` (typically the test
    framework's own files) and shortens absolute paths under ``cwd`` to ``./``.
    """

    patterns: Tuple[str, ...] = ()
    cwd: Optional[str] = None

    def filter(self, stack: str) -> List[str]:
        lines = []
        for line in (stack or "").split("\n"):
            if any(p in line for p in self.patterns):
                continue
            if self.cwd:
                line = line.replace(self.cwd.rstrip("/\\"), ".")
            lines.append(line)
        return lines
