"""Value-or-error sum type stored in a task's result slot."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Result(Generic[T_co]):
    """Either ``Ok(value)`` or ``Err(error)``; a running task has no result yet."""

    __slots__ = ()

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def unwrap(self) -> T_co:
        """Return the value, or raise the stored error unchanged."""

        if isinstance(self, Ok):
            return self.value
        raise cast(Err, self).error


@dataclass(frozen=True)
class Ok(Result[T_co]):
    value: T_co

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True)
class Err(Result[Any]):
    error: Exception

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Call ``fn`` and wrap its return value or raised exception."""

    try:
        return Ok(fn(*args, **kwargs))
    except Exception as exc:
        return Err(exc)


__all__ = ["Err", "Ok", "Result", "capture"]
