"""Tagged results of a throttle decision."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar, Union

from .errors import ActionFailure, ThrottledError

T = TypeVar("T")


@dataclass(frozen=True)
class Admitted(Generic[T]):
    """The action ran and its event was recorded."""

    value: T
    occurred_at: datetime
    forced: bool = False

    admitted = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Throttled:
    """No capacity left in at least one window; nothing was recorded."""

    scope: str
    key: str

    admitted = False

    def unwrap(self) -> Any:
        raise ThrottledError(self.scope, self.key)


@dataclass(frozen=True)
class Failed:
    """The action raised; the whole unit of work was rolled back."""

    cause: BaseException

    admitted = False

    def unwrap(self) -> Any:
        raise ActionFailure(self.cause) from self.cause


Outcome = Union[Admitted[Any], Throttled, Failed]
