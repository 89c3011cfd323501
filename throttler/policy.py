"""Window constraints and admission evaluation.

A policy is an unordered set of windows such as ``{"hour": 2, "day": 5}``.
Each window covers one unit of time ending now and admits while fewer than
``max_count`` events fall strictly after its cutoff. Windows are evaluated
independently and all of them must admit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from .errors import ConfigurationError

UNIT_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3_600,
    "day": 86_400,
    "week": 604_800,
}

RETENTION_MARGIN = timedelta(hours=24)

PolicyLike = Union["Policy", Mapping[Any, Any], Iterable[Any], None]


@dataclass(frozen=True)
class Window:
    """At most `max_count` events per one `unit` of time."""

    unit: str
    max_count: int

    def __post_init__(self) -> None:
        unit = _normalize_unit(self.unit)
        if isinstance(self.max_count, bool) or not isinstance(self.max_count, int):
            raise ConfigurationError(
                f"Window max count must be an integer, got {self.max_count!r}"
            )
        if self.max_count < 0:
            raise ConfigurationError(f"Window max count must be >= 0, got {self.max_count}")
        object.__setattr__(self, "unit", unit)

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=UNIT_SECONDS[self.unit])

    def cutoff(self, now: datetime) -> datetime:
        return now - self.duration

    def count(self, now: datetime, timestamps: Iterable[datetime]) -> int:
        """Count timestamps strictly inside the window."""
        cutoff = self.cutoff(now)
        return sum(1 for ts in timestamps if ts > cutoff)

    def admits(self, now: datetime, timestamps: Iterable[datetime]) -> bool:
        return self.count(now, timestamps) < self.max_count


@dataclass(frozen=True)
class Policy:
    """A set of independent window constraints."""

    windows: tuple[Window, ...] = ()

    @classmethod
    def parse(cls, spec: PolicyLike) -> "Policy":
        """Build a policy from a mapping or an iterable of pairs.

        Accepted shapes::

            {"hour": 2, "day": 5}
            [("hour", 2), ("day", 5)]
            [(2, "hour"), (5, "day")]
            [Window("hour", 2)]

        Raises:
            ConfigurationError: If the shape, a unit or a count is invalid.
        """
        if spec is None:
            return cls()
        if isinstance(spec, Policy):
            return spec
        if isinstance(spec, (str, bytes)):
            raise ConfigurationError(f"Invalid policy: {spec!r}")

        items: Iterable[Any] = spec.items() if isinstance(spec, Mapping) else spec
        windows = []
        try:
            for item in items:
                if isinstance(item, Window):
                    windows.append(item)
                    continue
                first, second = item
                windows.append(_window_from_pair(first, second))
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid policy: {spec!r}") from e
        return cls(tuple(windows))

    def __len__(self) -> int:
        return len(self.windows)

    def __iter__(self):
        return iter(self.windows)

    @property
    def longest(self) -> timedelta:
        if not self.windows:
            raise ConfigurationError("Policy has no windows")
        return max(window.duration for window in self.windows)

    def earliest_cutoff(self, now: datetime) -> datetime:
        """Oldest instant any window can still see."""
        return now - self.longest

    def denying_windows(self, now: datetime, timestamps: Iterable[datetime]) -> list[Window]:
        timestamps = list(timestamps)
        return [window for window in self.windows if not window.admits(now, timestamps)]


def _window_from_pair(first: Any, second: Any) -> Window:
    if isinstance(first, str):
        return Window(first, second)
    if isinstance(second, str):
        return Window(second, first)
    raise ConfigurationError(f"Window needs a unit name, got ({first!r}, {second!r})")


def _normalize_unit(unit: Any) -> str:
    if not isinstance(unit, str):
        raise ConfigurationError(f"Window unit must be a string, got {unit!r}")
    name = unit.strip().lower()
    if name not in UNIT_SECONDS and name.endswith("s") and name[:-1] in UNIT_SECONDS:
        name = name[:-1]
    if name not in UNIT_SECONDS:
        raise ConfigurationError(
            f"Unknown window unit {unit!r}; expected one of {', '.join(UNIT_SECONDS)}"
        )
    return name


def safe_cutoff(policy: PolicyLike, now: datetime, margin: Optional[timedelta] = None) -> datetime:
    """Oldest instant that may still affect a future evaluation, minus a margin."""
    margin = RETENTION_MARGIN if margin is None else margin
    return now - Policy.parse(policy).longest - margin

