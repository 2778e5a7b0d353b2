import time

_DESCRIPTIONS = {
    "tests/test_dedup.py::test_identical_signatures_merge": "Errors with equal name, message and top frame collapse into one group.",
    "tests/test_dedup.py::test_errors_without_stack_never_merge": "Stackless errors are never merged, even when name and message match.",
    "tests/test_environments.py::test_contextual_name_joins_nested_contexts": "Nested contexts A, B and test c give the qualified name 'A B c'.",
    "tests/test_environments.py::test_lookup_unknown_environment_is_fatal": "Events for an unregistered environment raise and create no phantom entry.",
    "tests/test_formatting.py::test_progress_never_renders_nan": "Progress is empty, never NaN, when no tests are expected.",
    "tests/test_formatting.py::test_progress_rounds_half_up": "Progress percentage rounds half up: 1 of 8 is 13%.",
    "tests/test_reporter.py::test_progress_after_mixed_outcomes": "Two passes and one failure out of four expected report 75% done.",
    "tests/test_reporter.py::test_repeated_errors_are_shown_once": "Three identical errors print one detailed block and one repeated-exceptions group.",
    "tests/test_reporter.py::test_orphan_log_is_flushed_immediately": "Logs outside a test print at once; logs inside a test stay buffered.",
    "tests/test_reporter.py::test_suite_end_summary": "Suite end prints '10 tests, 15 assertions, 1 environment ... OK'.",
    "tests/test_reporter.py::test_ticker_stops_at_suite_end": "The progress ticker is cancelled at suite end and never writes afterwards.",
    "tests/test_reporter.py::test_protocol_violation_stops_ticker": "A protocol error cancels the ticker and ends the run with nothing more written.",
    "tests/test_cli.py::test_replay_rejects_bad_verbosity": "An unknown --verbosity value exits with code 2 before any output.",
}

_START = {}

def _desc(nodeid: str) -> str:
    return _DESCRIPTIONS.get(nodeid, nodeid)

def pytest_runtest_setup(item):
    _START[item.nodeid] = time.perf_counter()
    print(f"TEST  {_desc(item.nodeid)}", flush=True)

_LABELS = {"passed": "PASS", "failed": "FAIL", "skipped": "SKIP"}

def pytest_runtest_logreport(report):
    if report.when != "call":
        return
    start = _START.pop(report.nodeid, None)
    suffix = "" if start is None else f"  ({time.perf_counter() - start:.3f}s)"
    label = _LABELS.get(report.outcome, report.outcome.upper())
    print(f"{label}  {_desc(report.nodeid)}{suffix}", flush=True)
