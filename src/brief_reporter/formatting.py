"""Pure text formatting for the brief reporter.

Nothing in here touches reporter state or the output stream; every function
takes already-resolved values and returns a string.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional, Sequence

from .colors import Colorizer
from .dedup import DeduplicatedError
from .environments import LogEntry
from .events import ErrorInfo

ASSERTION_ERROR = "AssertionError"


def pluralize(count: int, label: str) -> str:
    return f"{count} {label if count == 1 else label + 's'}"


def running_summary(expected_tests: int, environment_count: int) -> str:
    tests = f"{expected_tests} " if expected_tests else ""
    if environment_count == 1:
        env_label = "in 1 environment"
    else:
        env_label = f"across {environment_count} environments"
    return f"Running {tests}tests {env_label} ..."


def progress(executed_tests: int, expected_tests: int) -> str:
    if not expected_tests:
        return ""
    # Half-up rounding, not Python's banker's rounding.
    percentage = math.floor(executed_tests / expected_tests * 100 + 0.5)
    return f"{percentage}% done"


def status_line(expected_tests: int, executed_tests: int, environment_count: int) -> str:
    return (
        running_summary(expected_tests, environment_count)
        + " "
        + progress(executed_tests, expected_tests)
    )


def format_message(entry: LogEntry) -> str:
    return f"[{entry.level.upper()}] {entry.message}"


def format_messages(entries: Optional[Iterable[LogEntry]]) -> str:
    return "    " + "\n    ".join(format_message(e) for e in entries or ())


def filter_stack(stack_filter: Any, error: ErrorInfo) -> List[str]:
    if not error.stack:
        return []
    if stack_filter is None:
        return error.stack.split("\n")
    return list(stack_filter.filter(error.stack))


def format_stack(
    error: ErrorInfo,
    stack_filter: Any = None,
    include_source: bool = True,
    stack_lines: Optional[int] = None,
) -> str:
    """Render an error as an indented block.

    The generic assertion error name is left out, so assertion failures read
    as just their message. ``source`` is the offending line of test code when
    the runner could find it.
    """
    name = error.name
    name = f"{name}: " if name and name != ASSERTION_ERROR else ""
    out = f"  {name}{error.message}\n"

    if include_source and error.source:
        out += f"  -> {error.source}\n"

    stack = filter_stack(stack_filter, error)
    if stack_lines:
        stack = stack[:stack_lines]
    if not stack:
        return out
    return out + "    " + "\n      ".join(stack) + "\n"


def format_occurrence(test_name: str, log: Sequence[LogEntry]) -> str:
    msg = f"  {test_name}"
    if log:
        msg += "\n" + format_messages(log)
    return msg


def format_repeated_errors(errors: Iterable[DeduplicatedError], stack_filter: Any = None) -> str:
    out = "Repeated exceptions:\n"
    for error in errors:
        out += "\n".join(format_occurrence(o.test_name, o.log) for o in error.occurrences)
        out += "\n\n"
        out += format_stack(error.as_error(), stack_filter, include_source=False, stack_lines=1)
    return out


def summarize_errors(failures: int, errors: int, timeouts: int) -> str:
    details = []
    if failures > 0:
        details.append(pluralize(failures, "failure"))
    if errors > 0:
        details.append(pluralize(errors, "error"))
    if timeouts > 0:
        details.append(pluralize(timeouts, "timeout"))
    return ", ".join(details)


def tallies(tests: int, assertions: int, environment_count: int) -> str:
    return (
        f"{pluralize(tests, 'test')}, "
        f"{pluralize(assertions, 'assertion')}, "
        f"{pluralize(environment_count, 'environment')} ... "
    )


def final_summary(
    tests: int,
    assertions: int,
    environment_count: int,
    ok: bool,
    failures: int = 0,
    errors: int = 0,
    timeouts: int = 0,
    colors: Optional[Colorizer] = None,
) -> str:
    colors = colors or Colorizer()
    if ok:
        outcome = colors.green("OK")
    else:
        outcome = colors.red(summarize_errors(failures, errors, timeouts))
    return tallies(tests, assertions, environment_count) + outcome
