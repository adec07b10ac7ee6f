"""Building blocks for running a build as a sequence of steps."""

from __future__ import annotations

import abc
import enum
import sys
import threading
from typing import Any, Iterable, Mapping, TextIO

STATE_CANCELLED = "cancelled"
STATE_HALTED = "halted"


class StepAction(enum.Enum):
    """What the runner should do after a step has run."""

    CONTINUE = enum.auto()
    HALT = enum.auto()


class ConfigError(Exception):
    """One or more configuration values failed validation."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class StepError(Exception):
    """A step failed and stored the reason in the state bag."""


class StateBag:
    """Shared key/value state passed between steps."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def put(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values


class Ui:
    """Writes progress and error messages and remembers what was written."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr
        self.history: list[tuple[str, str]] = []

    def _write(self, stream: TextIO, kind: str, message: str) -> None:
        self.history.append((kind, message))
        stream.write(message + "\n")
        stream.flush()

    def say(self, message: str) -> None:
        self._write(self._out, "say", message)

    def message(self, message: str) -> None:
        self._write(self._out, "message", message)

    def error(self, message: str) -> None:
        self._write(self._err, "error", message)


class Step(abc.ABC):
    """One unit of work in a build."""

    @abc.abstractmethod
    def run(self, state: StateBag, cancel: threading.Event | None = None) -> StepAction:
        """Perform the step and tell the runner whether to go on."""

    def cleanup(self, state: StateBag) -> None:
        """Undo what run did, if anything; by default there is nothing to undo."""