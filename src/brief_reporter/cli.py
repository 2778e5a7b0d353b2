from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

import typer
from rich import print as rprint
from rich.markup import escape

from .environments import ProtocolError
from .events import EVENT_TYPES, SuiteEnd, parse_event
from .reporter import create

app = typer.Typer(add_completion=False, no_args_is_help=True)


def setup_logging(level: str = "warning") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def read_events(path: Path) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield ``(name, data)`` from a JSON-lines event log.

    Each line is ``{"event": "<name>", "data": {...}}``; blank lines are skipped.
    """
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_num}: invalid JSON: {e}") from e
            if not isinstance(record, dict) or "event" not in record:
                raise ValueError(f"{path}:{line_num}: expected an object with an 'event' key")
            yield record["event"], record.get("data") or {}


@app.command()
def replay(
    events: str = typer.Argument(..., help="JSON-lines file of runner events"),
    verbosity: str = typer.Option("", help="info|debug"),
    color: bool = typer.Option(True, help="Colorize output"),
    bright: bool = typer.Option(False, help="Bold colors"),
    stack_lines: Optional[int] = typer.Option(None, help="Max stack lines per failure"),
    cwd: Optional[str] = typer.Option(None, help="Directory to shorten in stack traces"),
    delay: float = typer.Option(0.0, help="Seconds to wait between events"),
    log_level: str = typer.Option("warning", help="debug|info|warning|error"),
) -> None:
    """Replay a recorded event stream through the brief reporter."""
    setup_logging(log_level)
    reporter = None
    ok = False
    try:
        reporter = create(
            output_stream=sys.stdout,
            verbosity=verbosity,
            color=color,
            bright=bright,
            stack_lines=stack_lines,
            cwd=cwd,
        )
        for name, data in read_events(Path(events)):
            event = parse_event(name, data)
            reporter.dispatch(event)
            if isinstance(event, SuiteEnd):
                ok = event.ok
            if delay > 0:
                time.sleep(delay)
    except (ProtocolError, ValueError, OSError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}", file=sys.stderr)
        raise typer.Exit(code=2)
    finally:
        if reporter is not None:
            reporter.close()

    raise typer.Exit(code=0 if ok else 1)


@app.command("events")
def list_events() -> None:
    """List the event names the reporter understands."""
    for name, cls in EVENT_TYPES.items():
        rprint(f"[green]{name}[/green]  {cls.__name__}")
