import io
import time

import pytest

from brief_reporter.emitter import EventEmitter
from brief_reporter.environments import UnbalancedContextError, UnknownEnvironmentError
from brief_reporter.reporter import Phase, create
from brief_reporter.status import CLEAR_STATUS
from brief_reporter.testing import env_payload, error_payload, make_reporter, run_test, strip_ansi

ENV = env_payload()


def start(reporter, tests=4, env=ENV) -> None:
    reporter.receive("suite:start")
    reporter.receive("suite:configuration", {"environment": env, "tests": tests})


def test_progress_after_mixed_outcomes() -> None:
    r, out, _ = make_reporter()
    start(r, tests=4)
    run_test(r, "t1")
    run_test(r, "t2")
    run_test(r, "t3", "failure", error=error_payload("AssertionError", "Expected 1 to be 2"))
    assert r.state.executed_tests == 3
    text = strip_ansi(out.getvalue())
    assert "Failure: t3 (Firefox 120 on Linux)" in text
    assert "  Expected 1 to be 2\n" in text
    assert text.endswith("Running 4 tests in 1 environment ... 75% done\n")


def test_banner_and_configuration_summary() -> None:
    r, out, _ = make_reporter()
    start(r, tests=4)
    assert out.getvalue() == (
        "Running tests ...\n" + CLEAR_STATUS + "Running 4 tests in 1 environment ...\n"
    )
    assert r.phase is Phase.RUNNING


def test_no_expected_tests_renders_no_percentage() -> None:
    r, out, sched = make_reporter()
    start(r, tests=0)
    run_test(r, "t1", "failure")
    sched.fire_next()
    text = out.getvalue()
    assert "NaN" not in text
    assert "% done" not in text
    assert "Running tests in 1 environment ... \n" in strip_ansi(text)


def test_repeated_errors_are_shown_once() -> None:
    r, out, _ = make_reporter()
    start(r, tests=5)
    for name in ("t1", "t2", "t3"):
        run_test(r, name, "error", error=error_payload())
    r.receive("suite:end", {"tests": 5, "assertions": 5, "errors": 3, "ok": False})

    text = strip_ansi(out.getvalue())
    assert text.count("Error: t") == 1
    assert "Error: t1 (Firefox 120 on Linux)" in text
    groups = r.state.deduplicator.errors
    assert len(groups) == 1
    assert [o.test_name for o in groups[0].occurrences] == ["t1", "t2", "t3"]
    assert "Repeated exceptions:\n  t1\n  t2\n  t3\n\n  TypeError: x is undefined\n    at f (lib/app.js:10:3)\n" in text
    assert r.state.executed_tests == 3


def test_repeated_exceptions_block_lists_both_tests() -> None:
    r, out, _ = make_reporter()
    start(r, tests=2)
    run_test(r, "t1", "error", error=error_payload())
    run_test(r, "t2", "error", error=error_payload())
    r.receive("suite:end", {"tests": 2, "assertions": 0, "errors": 2, "ok": False})
    text = strip_ansi(out.getvalue())
    block = text.split("Repeated exceptions:\n", 1)[1]
    assert block.startswith("  t1\n  t2\n\n")
    assert "2 tests, 0 assertions, 1 environment ... 2 errors\n" in text


def test_stackless_errors_each_get_details() -> None:
    r, out, _ = make_reporter()
    start(r, tests=2)
    run_test(r, "t1", "error", error=error_payload(stack=None))
    run_test(r, "t2", "error", error=error_payload(stack=None))
    text = strip_ansi(out.getvalue())
    assert "Error: t1 (" in text
    assert "Error: t2 (" in text
    assert len(r.state.deduplicator) == 2


def test_repeated_error_keeps_its_own_log() -> None:
    r, out, _ = make_reporter()
    start(r, tests=2)
    run_test(r, "t1", "error", error=error_payload(), logs=(("log", "first"),))
    run_test(r, "t2", "error", error=error_payload(), logs=(("warn", "second"),))
    r.receive("suite:end", {"tests": 2, "assertions": 2, "errors": 2, "ok": False})
    text = strip_ansi(out.getvalue())
    assert "  t1\n    [LOG] first\n  t2\n    [WARN] second\n\n" in text


def test_orphan_log_is_flushed_immediately() -> None:
    r, out, _ = make_reporter()
    start(r)
    r.receive("log", {"environment": ENV, "level": "info", "message": "orphan"})
    assert strip_ansi(out.getvalue()).endswith(
        "[INFO] orphan (Firefox 120 on Linux)\nRunning 4 tests in 1 environment ... 0% done\n"
    )
    run_test(r, "t1", "failure", logs=(("log", "buffered"),))
    text = strip_ansi(out.getvalue())
    assert text.count("orphan") == 1
    assert "Failure: t1 (Firefox 120 on Linux)\n    [LOG] buffered\n" in text
    assert "[LOG] buffered (" not in text


def test_success_logs_only_shown_in_debug() -> None:
    r, out, _ = make_reporter()
    start(r)
    run_test(r, "quiet", logs=(("log", "hidden"),))
    assert "hidden" not in out.getvalue()

    r, out, _ = make_reporter(verbosity="debug")
    start(r)
    run_test(r, "chatty", logs=(("log", "shown"),))
    assert "chatty\n    [LOG] shown\n" in strip_ansi(out.getvalue())


def test_contexts_qualify_test_names() -> None:
    r, out, _ = make_reporter()
    start(r)
    r.receive("context:start", {"environment": ENV, "name": "A"})
    r.receive("context:start", {"environment": ENV, "name": "B"})
    run_test(r, "c", "timeout")
    r.receive("context:end", {"environment": ENV, "name": "B"})
    r.receive("context:end", {"environment": ENV, "name": "A"})
    assert "Timeout: A B c (Firefox 120 on Linux)" in strip_ansi(out.getvalue())


def test_interleaved_environments() -> None:
    r, out, _ = make_reporter()
    other = env_payload("env-2", "Chrome 119")
    start(r, tests=2)
    r.receive("suite:configuration", {"environment": other, "tests": 2})
    r.receive("context:start", {"environment": ENV, "name": "Firefox ctx"})
    r.receive("context:start", {"environment": other, "name": "Chrome ctx"})
    run_test(r, "t", "failure", env=other)
    run_test(r, "t", "failure", env=ENV)
    text = strip_ansi(out.getvalue())
    assert "Failure: Chrome ctx t (Chrome 119)" in text
    assert "Failure: Firefox ctx t (Firefox 120 on Linux)" in text
    assert "Running 4 tests across 2 environments ... 50% done" in text


def test_verbose_output() -> None:
    r, out, _ = make_reporter(verbosity="info")
    start(r)
    r.receive("context:start", {"environment": ENV, "name": "A"})
    r.receive("test:deferred", {"environment": ENV, "name": "later", "comment": "needs fixture"})
    r.receive(
        "context:unsupported",
        {"environment": ENV, "context": {"name": "DOM"}, "unsupported": ["document", "window"]},
    )
    r.receive("context:end", {"environment": ENV, "name": "A"})
    r.receive("suite:end", {"tests": 0, "assertions": 0, "deferred": 1, "ok": True})
    text = strip_ansi(out.getvalue())
    assert "-> Firefox 120 on Linux\n" in text
    assert "Deferred: A later (Firefox 120 on Linux)\n          needs fixture\n" in text
    assert "Skipping unsupported context A DOM (Firefox 120 on Linux)\n    document\n    window\n" in text
    assert "1 deferred test\n" in text
    assert text.endswith("WARNING: No assertions!\n")


def test_quiet_mode_hides_deferred_and_unsupported() -> None:
    r, out, _ = make_reporter()
    start(r)
    before = out.getvalue()
    r.receive("test:deferred", {"environment": ENV, "name": "later"})
    r.receive("context:unsupported", {"environment": ENV, "context": "DOM", "unsupported": ["x"]})
    assert out.getvalue() == before


def test_uncaught_exception_does_not_need_a_test() -> None:
    r, out, _ = make_reporter()
    start(r)
    r.receive(
        "uncaughtException",
        {"environment": env_payload("ghost", "Node 20"), "name": "Error", "message": "async boom", "stack": "at t (x.js:1)"},
    )
    text = strip_ansi(out.getvalue())
    assert "Uncaught exception in Node 20:\n\n  Error: async boom\n    at t (x.js:1)\n" in text
    assert r.state.executed_tests == 0


def test_suite_end_summary() -> None:
    r, out, _ = make_reporter()
    start(r, tests=10)
    r.receive("suite:end", {"tests": 10, "assertions": 15, "ok": True})
    assert strip_ansi(out.getvalue()).endswith("10 tests, 15 assertions, 1 environment ... OK\n")
    assert r.phase is Phase.DONE


def test_ticker_stops_at_suite_end() -> None:
    r, out, sched = make_reporter()
    start(r, tests=2)
    assert [h.delay for h in sched.pending] == [0.25]
    sched.fire_next()
    assert out.getvalue().endswith(CLEAR_STATUS + "Running 2 tests in 1 environment ... 0% done\n")
    assert [h.delay for h in sched.pending] == [0.1]

    pending = sched.pending[0]
    r.receive("suite:end", {"tests": 2, "assertions": 2, "ok": True})
    assert pending.cancelled
    assert sched.pending == []
    final = out.getvalue()
    pending.callback()
    assert out.getvalue() == final


def test_threaded_ticker_is_silent_after_suite_end() -> None:
    stream = io.StringIO()
    r = create(output_stream=stream, ticker_delay=0.01, ticker_interval=0.01)
    start(r, tests=1)
    time.sleep(0.2)
    r.receive("suite:end", {"tests": 1, "assertions": 1, "ok": True})
    final = stream.getvalue()
    time.sleep(0.2)
    assert stream.getvalue() == final
    assert "% done" in final


def test_events_after_suite_end_are_ignored() -> None:
    r, out, _ = make_reporter()
    start(r)
    r.receive("suite:end", {"tests": 0, "assertions": 0, "ok": True})
    final = out.getvalue()
    run_test(r, "late", "failure")
    assert out.getvalue() == final
    assert r.state.executed_tests == 0


def test_protocol_violations_raise() -> None:
    r, _, _ = make_reporter()
    start(r)
    with pytest.raises(UnknownEnvironmentError):
        r.receive("test:setUp", {"environment": env_payload("nope"), "name": "t"})
    r.close()

    r, _, _ = make_reporter()
    start(r)
    with pytest.raises(UnbalancedContextError):
        r.receive("context:end", {"environment": ENV})
    r.close()


@pytest.mark.parametrize("outcome", ["success", "failure", "timeout"])
def test_unknown_environment_outcome_is_not_counted(outcome) -> None:
    r, _, _ = make_reporter()
    start(r)
    payload = {"environment": env_payload("ghost"), "name": "t"}
    if outcome != "success":
        payload["error"] = error_payload()
    with pytest.raises(UnknownEnvironmentError):
        r.receive(f"test:{outcome}", payload)
    assert r.state.executed_tests == 0
    assert r.state.status_line().endswith("0% done")


def test_protocol_violation_stops_ticker() -> None:
    r, out, sched = make_reporter()
    start(r, tests=2)
    assert [h.delay for h in sched.pending] == [0.25]

    with pytest.raises(UnbalancedContextError):
        r.receive("context:end", {"environment": ENV})
    assert r.phase is Phase.DONE
    assert sched.pending == []

    written = out.getvalue()
    assert sched.fire_next() is False
    r.receive("test:success", {"environment": ENV, "name": "late"})
    assert out.getvalue() == written


def test_listen_subscribes_to_runner_and_console() -> None:
    console = EventEmitter()
    runner = EventEmitter(console=console)
    r, out, _ = make_reporter()
    assert r.listen(runner) is r
    assert runner.listener_count("log") == 0
    assert console.listener_count("log") == 1

    runner.emit("suite:start")
    runner.emit("suite:configuration", {"environment": ENV, "tests": 1})
    console.emit("log", {"environment": ENV, "level": "log", "message": "from console"})
    runner.emit("test:setUp", {"environment": ENV, "name": "t"})
    runner.emit("test:tearDown", {"environment": ENV, "name": "t"})
    runner.emit("test:success", {"environment": ENV, "name": "t"})
    runner.emit("suite:end", {"tests": 1, "assertions": 1, "ok": True})

    text = strip_ansi(out.getvalue())
    assert "[LOG] from console (Firefox 120 on Linux)" in text
    assert text.endswith("1 test, 1 assertion, 1 environment ... OK\n")


def test_reporter_runs_do_not_share_state() -> None:
    a, _, _ = make_reporter()
    b, _, _ = make_reporter()
    start(a)
    run_test(a, "t1")
    assert a.state.executed_tests == 1
    assert b.state.executed_tests == 0
    assert len(b.state.registry) == 0
