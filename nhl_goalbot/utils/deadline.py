from __future__ import annotations

import time
from typing import Callable

from ..errors import DeadlineExceeded


class Deadline:
    """Cooperative per-tick deadline.

    Steps call `check()` before starting work and size their HTTP timeouts with
    `timeout(per_call)`. Nothing is forcibly interrupted.
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._end = clock() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self._end - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining <= 0.0

    def check(self, step: str = "") -> None:
        if self.expired:
            raise DeadlineExceeded(f"tick deadline passed before {step or 'step'}")

    def timeout(self, per_call: float) -> float:
        self.check()
        return min(per_call, self.remaining)

    def sleep(self, seconds: float, sleeper: Callable[[float], None] = time.sleep) -> None:
        """Sleep for `seconds`, cut short by the deadline."""
        sleeper(min(seconds, self.remaining))


def unbounded() -> Deadline:
    return Deadline(float("inf"))
