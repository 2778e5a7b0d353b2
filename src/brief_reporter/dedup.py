from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from .environments import LogEntry
from .events import ErrorInfo


class RecordOutcome(enum.Enum):
    NEW = "new"
    MERGED = "merged"


@dataclass(frozen=True)
class Occurrence:
    test_name: str
    log: Sequence[LogEntry] = ()


@dataclass
class DeduplicatedError:
    name: str
    message: str
    stack: str
    occurrences: List[Occurrence] = field(default_factory=list)

    @property
    def first_stack_line(self) -> str:
        return self.stack.split("\n")[0] if self.stack else ""

    def as_error(self) -> ErrorInfo:
        return ErrorInfo(name=self.name, message=self.message, stack=self.stack)


def same_root_cause(a: DeduplicatedError, b: ErrorInfo) -> bool:
    # Without a stack on both sides there is no signature to compare.
    if not a.stack or not b.stack:
        return False
    return (
        a.name == b.name
        and a.message == b.message
        and a.first_stack_line == b.first_stack_line
    )


class ErrorDeduplicator:
    """Groups errors that share a root cause.

    A typo in a central piece of code tends to make many tests throw the same
    error: same name, same message, same top stack frame. Only the first of
    those is worth showing in full; the rest are remembered as occurrences and
    listed once at the end of the run.

    Errors without a stack are never merged. Treating two identical errors as
    distinct is preferred over merging unrelated ones.
    """

    def __init__(self) -> None:
        self.errors: List[DeduplicatedError] = []

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[DeduplicatedError]:
        return iter(self.errors)

    def find_similar(self, error: ErrorInfo) -> Optional[DeduplicatedError]:
        if not error.stack:
            return None
        for err in self.errors:
            if same_root_cause(err, error):
                return err
        return None

    def record(self, error: ErrorInfo, occurrence: Occurrence) -> RecordOutcome:
        similar = self.find_similar(error)
        if similar is not None:
            similar.occurrences.append(occurrence)
            return RecordOutcome.MERGED
        self.errors.append(
            DeduplicatedError(
                name=error.name,
                message=error.message,
                stack=error.stack or "",
                occurrences=[occurrence],
            )
        )
        return RecordOutcome.NEW
