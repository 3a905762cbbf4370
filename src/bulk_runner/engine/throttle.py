"""Inter-item delay policies.

A policy only decides how long to wait. The lane performs the wait itself in
short ticks so pause and stop stay responsive during long delays.
"""

from __future__ import annotations

import random
from typing import Protocol, runtime_checkable


@runtime_checkable
class ThrottlePolicy(Protocol):
    """Strategy returning the wait between two consecutive items, in seconds."""

    def next_delay(self) -> float: ...


class NoDelay:
    def next_delay(self) -> float:
        return 0.0

    def __repr__(self) -> str:
        return "NoDelay()"


class FixedSmallDelay:
    """Constant short pause used for internal bulk mutations."""

    def __init__(self, seconds: float = 0.1) -> None:
        if seconds < 0:
            raise ValueError(f"Delay must be >= 0, got {seconds!r}")
        self.seconds = seconds

    def next_delay(self) -> float:
        return self.seconds

    def __repr__(self) -> str:
        return f"FixedSmallDelay(seconds={self.seconds!r})"


class RandomizedJitterDelay:
    """Uniformly random delay in ``[min_seconds, max_seconds]``.

    Used in front of abuse-sensitive external channels so sends do not form a
    regular, detectable pattern.
    """

    def __init__(
        self,
        min_seconds: float = 15.0,
        max_seconds: float = 40.0,
        *,
        rng: random.Random | None = None,
    ) -> None:
        if min_seconds < 0:
            raise ValueError(f"min_seconds must be >= 0, got {min_seconds!r}")
        if max_seconds < min_seconds:
            raise ValueError(
                f"max_seconds must be >= min_seconds, got {min_seconds!r}..{max_seconds!r}",
            )
        self.min_seconds = min_seconds
        self.max_seconds = max_seconds
        self._random = rng or random.Random()  # noqa: S311

    def next_delay(self) -> float:
        return self._random.uniform(self.min_seconds, self.max_seconds)

    def __repr__(self) -> str:
        return (
            f"RandomizedJitterDelay(min_seconds={self.min_seconds!r}, "
            f"max_seconds={self.max_seconds!r})"
        )
