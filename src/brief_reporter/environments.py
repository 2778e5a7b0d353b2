from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union

from .events import EnvironmentRef


class ProtocolError(RuntimeError):
    """The runner sent an event sequence the reporter cannot follow."""


class UnknownEnvironmentError(ProtocolError):
    pass


class DuplicateEnvironmentError(ProtocolError):
    pass


class UnbalancedContextError(ProtocolError):
    pass


@dataclass(frozen=True)
class LogEntry:
    level: str
    message: str


@dataclass
class Environment:
    uuid: str
    description: str
    contexts: List[str] = field(default_factory=list)
    current_test: Optional[str] = None
    log: List[LogEntry] = field(default_factory=list)


class EnvironmentRegistry:
    """One record per environment, keyed by uuid.

    Environments are independent: each keeps its own context stack and log
    buffer, so events interleaved across environments never interfere.
    """

    def __init__(self) -> None:
        self._envs: Dict[str, Environment] = {}

    def __len__(self) -> int:
        return len(self._envs)

    def __iter__(self) -> Iterator[Environment]:
        return iter(self._envs.values())

    def register(self, ref: EnvironmentRef) -> Environment:
        if ref.uuid in self._envs:
            raise DuplicateEnvironmentError(f"Environment {ref.uuid!r} configured twice")
        env = Environment(uuid=ref.uuid, description=str(ref))
        self._envs[ref.uuid] = env
        return env

    def lookup(self, ref: Union[EnvironmentRef, str]) -> Environment:
        uuid = ref if isinstance(ref, str) else ref.uuid
        env = self._envs.get(uuid)
        if env is None:
            raise UnknownEnvironmentError(f"Event references unregistered environment {uuid!r}")
        return env

    @staticmethod
    def push_context(env: Environment, name: str) -> None:
        env.contexts.append(name)

    @staticmethod
    def pop_context(env: Environment, name: Optional[str] = None) -> str:
        if not env.contexts:
            raise UnbalancedContextError(
                f"context:end without matching context:start in {env.description}"
            )
        if name is not None and env.contexts[-1] != name:
            raise UnbalancedContextError(
                f"context:end for {name!r} but innermost context is {env.contexts[-1]!r} "
                f"in {env.description}"
            )
        return env.contexts.pop()

    @staticmethod
    def begin_test(env: Environment, name: str) -> None:
        env.current_test = name
        # New list, not clear(): recorded error occurrences keep the old one.
        env.log = []

    @staticmethod
    def end_test(env: Environment) -> None:
        env.current_test = None

    @staticmethod
    def contextual_name(env: Environment, name: str) -> str:
        return " ".join(env.contexts + [name])

    @staticmethod
    def append_log(env: Environment, entry: LogEntry) -> Optional[LogEntry]:
        """Buffer ``entry`` for the running test.

        Returns None when no test is active; the caller should report the
        message on its own instead.
        """
        if not env.current_test:
            return None
        env.log.append(entry)
        return entry

    def unbalanced(self) -> List[Environment]:
        return [env for env in self._envs.values() if env.contexts]
