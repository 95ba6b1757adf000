"""Lifecycle of one unit of asynchronous remote data.

A ``ResultState`` is exactly one of ``Empty``, ``Loading``, ``Error`` or
``Ready``. Each variant is its own class so callers branch with
``isinstance`` (or the ``is_*`` predicates) instead of probing values.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from ..errors import ProgrammerError

T = TypeVar("T")
U = TypeVar("U")


class ResultState(Generic[T]):
    """Base class of the four state variants. Not instantiated directly."""

    __slots__ = ()

    def is_empty(self) -> bool:
        return isinstance(self, Empty)

    def is_loading(self) -> bool:
        return isinstance(self, Loading)

    def is_error(self) -> bool:
        return isinstance(self, Error)

    def is_ready(self) -> bool:
        return isinstance(self, Ready)

    def map(self, fn: "Callable[[T], ResultState[U] | U]") -> "ResultState[U]":
        return map_state(self, fn)

    def unwrap_or(self, default: U) -> "T | U":
        return unwrap_or(self, default)

    def unwrap(self) -> T:
        return unwrap(self)


@dataclass(frozen=True)
class Empty(ResultState[Any]):
    """No data, and none is being fetched."""

    def __repr__(self) -> str:
        return "Empty"


@dataclass(frozen=True)
class Loading(ResultState[Any]):
    """Data is being fetched."""

    def __repr__(self) -> str:
        return "Loading"


@dataclass(frozen=True)
class Error(ResultState[Any]):
    """Fetching failed."""

    message: str


@dataclass(frozen=True)
class Ready(ResultState[T]):
    """Data is available."""

    value: T


EMPTY = Empty()
LOADING = Loading()


def error(message: object) -> Error:
    """Build an Error state from an exception or any message."""
    return Error(message if isinstance(message, str) else str(message) or type(message).__name__)


def is_empty(state: ResultState) -> bool:
    return isinstance(state, Empty)


def is_loading(state: ResultState) -> bool:
    return isinstance(state, Loading)


def is_error(state: ResultState) -> bool:
    return isinstance(state, Error)


def is_ready(state: ResultState) -> bool:
    return isinstance(state, Ready)


def from_outcome(outcome: Any) -> ResultState:
    """Normalize a fetch result: states pass through, values become Ready."""
    if isinstance(outcome, ResultState):
        return outcome
    return Ready(outcome)


def map_state(state: ResultState[T], fn: Callable[[T], Any]) -> ResultState:
    """Apply ``fn`` to a Ready value; any other state is returned unchanged.

    ``fn`` may return a ResultState or a plain value.
    """
    if not isinstance(state, Ready):
        return state
    return from_outcome(fn(state.value))


def all_ready(*states: ResultState) -> ResultState[tuple]:
    """Wait for all states to be Ready.

    Returns:
        The first non-Ready state in argument order, or Ready of a tuple of
        all values
    """
    for state in states:
        if not isinstance(state, Ready):
            return state
    return Ready(tuple(state.value for state in states))


def unwrap_or(state: ResultState[T], default: U) -> T | U:
    if isinstance(state, Ready):
        return state.value
    return default


def unwrap(state: ResultState[T]) -> T:
    """Get the Ready value.

    Raises:
        ProgrammerError: If the state is not Ready
    """
    if isinstance(state, Ready):
        return state.value
    raise ProgrammerError(f"unwrap() called on {state!r}")
