"""A value-or-error container for code that prefers not to raise at once."""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from nebulastore.types import StatusError

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """Holds either a value or a :class:`StatusError`."""

    __slots__ = ("_value", "_error")

    def __init__(self, value: T | None = None, *, error: StatusError | None = None) -> None:
        if error is not None and not isinstance(error, StatusError):
            raise TypeError("error must be a StatusError")
        self._value = value if error is None else None
        self._error = error

    def has_value(self) -> bool:
        return self._error is None

    def has_error(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> StatusError | None:
        return self._error

    def unwrap(self) -> T:
        """Return the value, or raise the held error."""
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self._error is not None:
            return Result(error=self._error)
        return Result(fn(self._value))  # type: ignore[arg-type]

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        if self._error is not None:
            return Result(error=self._error)
        return fn(self._value)  # type: ignore[arg-type]

    def or_else(self, fn: Callable[[StatusError], "Result[T]"]) -> "Result[T]":
        if self._error is not None:
            return fn(self._error)
        return self

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._value == other._value and self._error is other._error

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Result(error={self._error!r})"
        return f"Result({self._value!r})"


def ok(value: Any = None) -> Result:
    """A successful result; with no argument it carries ``None``."""
    return Result(value)


def err(error: StatusError) -> Result:
    """A failed result carrying ``error``."""
    return Result(error=error)