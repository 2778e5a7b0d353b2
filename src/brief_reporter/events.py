"""Runner events understood by the reporter.

Each lifecycle event the runner emits is a small frozen dataclass. The reporter
dispatches on the dataclass type; ``parse_event`` turns the runner's
``(name, payload)`` pairs into those types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union


@dataclass(frozen=True)
class EnvironmentRef:
    uuid: str
    description: str = ""

    def __str__(self) -> str:
        return self.description or self.uuid

    @staticmethod
    def from_payload(data: Any) -> "EnvironmentRef":
        if isinstance(data, EnvironmentRef):
            return data
        if isinstance(data, str):
            return EnvironmentRef(uuid=data, description=data)
        if not isinstance(data, Mapping) or "uuid" not in data:
            raise ValueError(f"Malformed environment: {data!r}")
        uuid = str(data["uuid"])
        return EnvironmentRef(uuid=uuid, description=str(data.get("description") or uuid))


@dataclass(frozen=True)
class ErrorInfo:
    name: str = ""
    message: str = ""
    stack: str = ""
    source: Optional[str] = None

    @property
    def first_stack_line(self) -> str:
        return self.stack.split("\n")[0] if self.stack else ""

    @staticmethod
    def from_payload(data: Any) -> "ErrorInfo":
        if isinstance(data, ErrorInfo):
            return data
        if not isinstance(data, Mapping):
            raise ValueError(f"Malformed error: {data!r}")
        return ErrorInfo(
            name=str(data.get("name") or ""),
            message=str(data.get("message") or ""),
            stack=str(data.get("stack") or ""),
            source=data.get("source"),
        )


@dataclass(frozen=True)
class SuiteStart:
    pass


@dataclass(frozen=True)
class SuiteConfiguration:
    environment: EnvironmentRef
    tests: int = 0


@dataclass(frozen=True)
class ContextStart:
    environment: EnvironmentRef
    name: str


@dataclass(frozen=True)
class ContextEnd:
    environment: EnvironmentRef
    name: Optional[str] = None


@dataclass(frozen=True)
class ContextUnsupported:
    environment: EnvironmentRef
    context: str
    unsupported: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LogMessage:
    environment: EnvironmentRef
    level: str
    message: str


@dataclass(frozen=True)
class TestSetUp:
    __test__ = False

    environment: EnvironmentRef
    name: str


@dataclass(frozen=True)
class TestTearDown:
    __test__ = False

    environment: EnvironmentRef
    name: str


@dataclass(frozen=True)
class TestSuccess:
    __test__ = False

    environment: EnvironmentRef
    name: str


@dataclass(frozen=True)
class TestFailure:
    __test__ = False

    environment: EnvironmentRef
    name: str
    error: Optional[ErrorInfo] = None


@dataclass(frozen=True)
class TestError:
    __test__ = False

    environment: EnvironmentRef
    name: str
    error: ErrorInfo = field(default_factory=ErrorInfo)


@dataclass(frozen=True)
class TestTimeout:
    __test__ = False

    environment: EnvironmentRef
    name: str
    error: Optional[ErrorInfo] = None


@dataclass(frozen=True)
class TestDeferred:
    __test__ = False

    environment: EnvironmentRef
    name: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class UncaughtException:
    environment: EnvironmentRef
    error: ErrorInfo


@dataclass(frozen=True)
class SuiteEnd:
    tests: int = 0
    assertions: int = 0
    failures: int = 0
    errors: int = 0
    timeouts: int = 0
    deferred: int = 0
    ok: bool = True


Event = Union[
    SuiteStart,
    SuiteConfiguration,
    ContextStart,
    ContextEnd,
    ContextUnsupported,
    LogMessage,
    TestSetUp,
    TestTearDown,
    TestSuccess,
    TestFailure,
    TestError,
    TestTimeout,
    TestDeferred,
    UncaughtException,
    SuiteEnd,
]

EVENT_TYPES: Dict[str, Type[Any]] = {
    "suite:start": SuiteStart,
    "suite:configuration": SuiteConfiguration,
    "context:start": ContextStart,
    "context:end": ContextEnd,
    "context:unsupported": ContextUnsupported,
    "log": LogMessage,
    "test:setUp": TestSetUp,
    "test:tearDown": TestTearDown,
    "test:success": TestSuccess,
    "test:failure": TestFailure,
    "test:error": TestError,
    "test:timeout": TestTimeout,
    "test:deferred": TestDeferred,
    "uncaughtException": UncaughtException,
    "suite:end": SuiteEnd,
}

EVENT_NAMES: Dict[Type[Any], str] = {v: k for k, v in EVENT_TYPES.items()}


def _int(data: Mapping[str, Any], key: str) -> int:
    v = data.get(key)
    if v is None:
        return 0
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValueError(f"Expected integer for {key!r}, got {v!r}") from None


def _require(data: Mapping[str, Any], key: str, event: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"{event} event missing {key!r}")
    return data[key]


def _context_name(context: Any) -> str:
    if isinstance(context, Mapping):
        return str(context.get("name", ""))
    return str(context)


def _optional_error(data: Mapping[str, Any]) -> Optional[ErrorInfo]:
    err = data.get("error")
    return None if err is None else ErrorInfo.from_payload(err)


def parse_event(name: str, payload: Any = None) -> Event:
    """Build the event dataclass for a runner ``(name, payload)`` pair.

    Event instances are passed through unchanged. Raises ``ValueError`` for
    unknown names and malformed payloads.
    """
    cls = EVENT_TYPES.get(name)
    if cls is None:
        raise ValueError(f"Unknown event: {name!r}")
    if isinstance(payload, cls):
        return payload

    data: Mapping[str, Any] = payload or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{name} payload must be a mapping, got {type(data).__name__}")

    if cls is SuiteStart:
        return SuiteStart()
    if cls is SuiteEnd:
        return SuiteEnd(
            tests=_int(data, "tests"),
            assertions=_int(data, "assertions"),
            failures=_int(data, "failures"),
            errors=_int(data, "errors"),
            timeouts=_int(data, "timeouts"),
            deferred=_int(data, "deferred"),
            ok=bool(data.get("ok", True)),
        )

    env = EnvironmentRef.from_payload(_require(data, "environment", name))

    if cls is SuiteConfiguration:
        return SuiteConfiguration(environment=env, tests=_int(data, "tests"))
    if cls is ContextEnd:
        return ContextEnd(environment=env, name=data.get("name"))
    if cls is ContextUnsupported:
        unsupported: List[str] = [str(x) for x in data.get("unsupported") or ()]
        return ContextUnsupported(
            environment=env,
            context=_context_name(_require(data, "context", name)),
            unsupported=tuple(unsupported),
        )
    if cls is LogMessage:
        return LogMessage(
            environment=env,
            level=str(data.get("level") or "log"),
            message=str(data.get("message", "")),
        )
    if cls is UncaughtException:
        # Runners send the error either nested or flattened into the payload.
        err = data.get("error", data)
        return UncaughtException(environment=env, error=ErrorInfo.from_payload(err))

    test_name = str(_require(data, "name", name))
    if cls is TestError:
        return TestError(
            environment=env,
            name=test_name,
            error=ErrorInfo.from_payload(_require(data, "error", name)),
        )
    if cls in (TestFailure, TestTimeout):
        return cls(environment=env, name=test_name, error=_optional_error(data))
    if cls is TestDeferred:
        return TestDeferred(environment=env, name=test_name, comment=data.get("comment"))
    return cls(environment=env, name=test_name)
