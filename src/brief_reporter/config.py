from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

VERBOSITY_LEVELS = ("", "warning", "info", "debug")


class ReporterOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    output_stream: Optional[Any] = Field(
        default=None,
        alias="outputStream",
        description="object with write(); defaults to sys.stdout",
    )
    cwd: Optional[str] = Field(default=None, description="stripped from stack lines")
    stack_filter: Optional[Any] = Field(
        default=None,
        alias="stackFilter",
        description="object with filter(stack) -> list of lines",
    )
    verbosity: str = Field(default="", description="warning|info|debug")
    color: bool = False
    bright: bool = False
    stack_lines: Optional[int] = Field(
        default=None,
        alias="stackLines",
        ge=1,
        description="max stack lines in detailed failure output",
    )

    ticker_delay: float = Field(default=0.25, gt=0, description="seconds before the first status refresh")
    ticker_interval: float = Field(default=0.1, gt=0, description="seconds between status refreshes")

    @field_validator("verbosity", mode="before")
    @classmethod
    def _check_verbosity(cls, v: Any) -> str:
        v = (v or "").lower()
        if v not in VERBOSITY_LEVELS:
            raise ValueError(f"Unknown verbosity: {v!r}")
        return v

    @property
    def verbose(self) -> bool:
        return self.verbosity in ("info", "debug")

    @property
    def vverbose(self) -> bool:
        return self.verbosity == "debug"
