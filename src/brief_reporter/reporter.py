"""Brief progress reporter.

Keeps a live status line ("Running 12 tests in 1 environment ... 50% done")
at the bottom of the output and prints details only for tests that did not
pass. Repeated errors with the same root cause are shown once in full and
listed together at the end of the run.

State lives in a ``ReporterState`` value created per reporter; each event type
has its own ``handle`` implementation that updates the state and writes to a
``StatusSink``.
"""

from __future__ import annotations

import enum
import logging
import sys
import threading
from dataclasses import dataclass, field
from functools import partial, singledispatch
from typing import Any, Mapping, Optional, Union

from .colors import Colorizer
from .config import ReporterOptions
from .dedup import ErrorDeduplicator, Occurrence, RecordOutcome
from .environments import EnvironmentRegistry, LogEntry, ProtocolError
from .events import (
    EVENT_NAMES,
    EVENT_TYPES,
    ContextEnd,
    ContextStart,
    ContextUnsupported,
    Event,
    LogMessage,
    SuiteConfiguration,
    SuiteEnd,
    SuiteStart,
    TestDeferred,
    TestError,
    TestFailure,
    TestSetUp,
    TestSuccess,
    TestTearDown,
    TestTimeout,
    UncaughtException,
    parse_event,
)
from .formatting import (
    final_summary,
    format_message,
    format_messages,
    format_repeated_errors,
    format_stack,
    pluralize,
    running_summary,
    status_line,
)
from .stack_filter import StackFilter
from .status import ProgressTicker, Scheduler, StatusSink, TerminalStatusSink, ThreadingScheduler

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUMMARIZING = "summarizing"
    DONE = "done"


@dataclass
class ReporterState:
    registry: EnvironmentRegistry = field(default_factory=EnvironmentRegistry)
    deduplicator: ErrorDeduplicator = field(default_factory=ErrorDeduplicator)
    phase: Phase = Phase.IDLE
    expected_tests: int = 0
    executed_tests: int = 0

    def status_line(self) -> str:
        return status_line(self.expected_tests, self.executed_tests, len(self.registry))


@dataclass
class Output:
    sink: StatusSink
    colors: Colorizer = field(default_factory=Colorizer)
    stack_filter: Any = None
    stack_lines: Optional[int] = None
    verbose: bool = False
    vverbose: bool = False
    ticker: Optional[ProgressTicker] = None

    def summary(self, state: ReporterState) -> None:
        self.sink.write_line(state.status_line())


@singledispatch
def handle(event: Any, state: ReporterState, out: Output) -> None:
    raise TypeError(f"No handler for event {event!r}")


@handle.register
def _suite_start(event: SuiteStart, state: ReporterState, out: Output) -> None:
    state.phase = Phase.RUNNING
    out.sink.write_line("Running tests ...")
    if out.ticker is not None:
        out.ticker.start()


@handle.register
def _suite_configuration(event: SuiteConfiguration, state: ReporterState, out: Output) -> None:
    state.registry.register(event.environment)
    state.expected_tests += event.tests or 0
    out.sink.clear_status()
    if out.verbose:
        out.sink.write_line(f"-> {event.environment}")
    out.sink.write_line(running_summary(state.expected_tests, len(state.registry)))


@handle.register
def _context_start(event: ContextStart, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    state.registry.push_context(env, event.name)


@handle.register
def _context_end(event: ContextEnd, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    state.registry.pop_context(env, event.name)


@handle.register
def _context_unsupported(event: ContextUnsupported, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    if not out.verbose:
        return
    name = state.registry.contextual_name(env, event.context)
    out.sink.clear_status()
    out.sink.write_line(f"Skipping unsupported context {name} ({env.description})")
    out.sink.write_line("    " + "\n    ".join(event.unsupported))
    out.summary(state)


@handle.register
def _log(event: LogMessage, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    entry = LogEntry(level=event.level, message=event.message)
    if state.registry.append_log(env, entry) is None:
        out.sink.clear_status()
        out.sink.write_line(f"{format_message(entry)} ({env.description})")
        out.summary(state)


@handle.register
def _test_set_up(event: TestSetUp, state: ReporterState, out: Output) -> None:
    state.registry.begin_test(state.registry.lookup(event.environment), event.name)


@handle.register
def _test_tear_down(event: TestTearDown, state: ReporterState, out: Output) -> None:
    state.registry.end_test(state.registry.lookup(event.environment))


@handle.register
def _test_success(event: TestSuccess, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    state.executed_tests += 1
    if not out.vverbose or not env.log:
        return
    out.sink.clear_status()
    out.sink.write_line(state.registry.contextual_name(env, event.name))
    out.sink.write_line(format_messages(env.log))
    out.summary(state)


def report_exception(
    event: Union[TestFailure, TestError, TestTimeout],
    state: ReporterState,
    out: Output,
    label: str,
) -> None:
    env = state.registry.lookup(event.environment)
    state.executed_tests += 1
    name = state.registry.contextual_name(env, event.name)
    out.sink.clear_status()
    out.sink.write_line(f"{label}{name} ({env.description})")
    if env.log:
        out.sink.write_line(format_messages(env.log))
    if event.error is not None:
        out.sink.write(format_stack(event.error, out.stack_filter, stack_lines=out.stack_lines))
    out.summary(state)


@handle.register
def _test_failure(event: TestFailure, state: ReporterState, out: Output) -> None:
    report_exception(event, state, out, out.colors.red("Failure: "))


@handle.register
def _test_error(event: TestError, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    occurrence = Occurrence(test_name=state.registry.contextual_name(env, event.name), log=env.log)
    if state.deduplicator.record(event.error, occurrence) is RecordOutcome.MERGED:
        # Repeats still count as executed, otherwise progress stops short of 100%.
        state.executed_tests += 1
        logger.debug("Repeated error in %s: %s", occurrence.test_name, event.error.message)
        return
    report_exception(event, state, out, out.colors.yellow("Error: "))


@handle.register
def _test_timeout(event: TestTimeout, state: ReporterState, out: Output) -> None:
    report_exception(event, state, out, out.colors.red("Timeout: "))


@handle.register
def _test_deferred(event: TestDeferred, state: ReporterState, out: Output) -> None:
    env = state.registry.lookup(event.environment)
    if not out.verbose:
        return
    name = state.registry.contextual_name(env, event.name)
    out.sink.clear_status()
    out.sink.write_line(f"{out.colors.purple('Deferred:')} {name} ({env.description})")
    if event.comment:
        out.sink.write_line("          " + event.comment)
    out.summary(state)


@handle.register
def _uncaught_exception(event: UncaughtException, state: ReporterState, out: Output) -> None:
    # Not tied to any test, and may arrive before the environment is configured.
    out.sink.clear_status()
    out.sink.write_line(out.colors.red(f"Uncaught exception in {event.environment}:") + "\n")
    out.sink.write(format_stack(event.error, out.stack_filter))
    out.summary(state)


@handle.register
def _suite_end(event: SuiteEnd, state: ReporterState, out: Output) -> None:
    if out.ticker is not None:
        out.ticker.stop()
    state.phase = Phase.SUMMARIZING
    out.sink.clear_status()

    if state.deduplicator:
        out.sink.write("\n" + format_repeated_errors(state.deduplicator, out.stack_filter))

    out.sink.write_line(
        final_summary(
            event.tests,
            event.assertions,
            len(state.registry),
            event.ok,
            failures=event.failures,
            errors=event.errors,
            timeouts=event.timeouts,
            colors=out.colors,
        )
    )

    if event.deferred > 0:
        out.sink.write_line(pluralize(event.deferred, "deferred test"))

    if out.verbose and event.assertions == 0:
        out.sink.write_line(out.colors.yellow("WARNING: No assertions!"))

    for env in state.registry.unbalanced():
        logger.warning("Contexts still open at suite end in %s: %s", env.description, env.contexts)

    state.phase = Phase.DONE


class BriefReporter:
    def __init__(self, options: ReporterOptions, scheduler: Optional[Scheduler] = None) -> None:
        self.options = options
        self.out_stream = options.output_stream if options.output_stream is not None else sys.stdout
        self.sink = TerminalStatusSink(self.out_stream)

        stack_filter = options.stack_filter
        if stack_filter is None and options.cwd:
            stack_filter = StackFilter(cwd=options.cwd)

        self.lock = threading.RLock()
        self.ticker = ProgressTicker(
            scheduler or ThreadingScheduler(),
            self.print_progress,
            delay=options.ticker_delay,
            interval=options.ticker_interval,
            lock=self.lock,
        )
        self.output = Output(
            sink=self.sink,
            colors=Colorizer(color=options.color, bright=options.bright),
            stack_filter=stack_filter,
            stack_lines=options.stack_lines,
            verbose=options.verbose,
            vverbose=options.vverbose,
            ticker=self.ticker,
        )
        self.state = ReporterState()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def listen(self, runner: Any) -> "BriefReporter":
        console = getattr(runner, "console", None)
        for name in EVENT_TYPES:
            if name == "log" and console is not None:
                continue
            runner.on(name, partial(self.receive, name))
        if console is not None:
            console.on("log", partial(self.receive, "log"))
        return self

    def receive(self, name: str, payload: Any = None) -> None:
        self.dispatch(parse_event(name, payload))

    def dispatch(self, event: Event) -> None:
        with self.lock:
            if self.state.phase is Phase.DONE:
                logger.warning("Ignoring %s received after suite:end", EVENT_NAMES.get(type(event), event))
                return
            logger.debug("%s", EVENT_NAMES.get(type(event), event))
            try:
                handle(event, self.state, self.output)
            except ProtocolError:
                # The run cannot continue; nothing may be written after this.
                self.ticker.stop()
                self.state.phase = Phase.DONE
                raise
            finally:
                self.sink.flush()

    def print_progress(self) -> None:
        self.sink.rewrite_last_line(self.state.status_line())
        self.sink.flush()

    def close(self) -> None:
        self.ticker.stop()


def create(
    options: Union[ReporterOptions, Mapping[str, Any], None] = None,
    scheduler: Optional[Scheduler] = None,
    **overrides: Any,
) -> BriefReporter:
    if isinstance(options, ReporterOptions):
        data = {name: getattr(options, name) for name in ReporterOptions.model_fields}
    else:
        data = dict(options or {})
    data.update(overrides)
    return BriefReporter(ReporterOptions.model_validate(data), scheduler=scheduler)
