from __future__ import annotations

from dataclasses import dataclass

from rich.color import ColorSystem
from rich.style import Style


@dataclass(frozen=True)
class Colorizer:
    """Wraps text in ANSI styles when colour output is on.

    color=False returns text untouched; bright=True adds bold.
    """

    color: bool = False
    bright: bool = False

    def style(self, text: str, color: str) -> str:
        if not self.color or not text:
            return text
        return Style(color=color, bold=self.bright).render(text, color_system=ColorSystem.STANDARD)

    def red(self, text: str) -> str:
        return self.style(text, "red")

    def green(self, text: str) -> str:
        return self.style(text, "green")

    def yellow(self, text: str) -> str:
        return self.style(text, "yellow")

    def purple(self, text: str) -> str:
        return self.style(text, "magenta")
