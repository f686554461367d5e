"""Second/microsecond time values and differences between them."""

from __future__ import annotations

import time
from dataclasses import dataclass


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


@dataclass(frozen=True)
class Timeval:
    """A point in time as whole seconds plus microseconds."""

    sec: int = 0
    usec: int = 0

    def to_ms(self) -> int:
        """Milliseconds, with the microsecond part truncated toward zero."""
        return self.sec * 1000 + _trunc_div(self.usec, 1000)

    def to_us(self) -> int:
        """Microseconds."""
        return self.sec * 1_000_000 + self.usec

    @staticmethod
    def now() -> "Timeval":
        """The current wall-clock time."""
        sec, usec = divmod(time.time_ns() // 1000, 1_000_000)
        return Timeval(sec, usec)


def subtract_ms(x: Timeval, y: Timeval) -> int:
    """Return ``x - y`` in milliseconds."""
    return x.to_ms() - y.to_ms()


def subtract_us(x: Timeval, y: Timeval) -> int:
    """Return ``x - y`` in microseconds."""
    return x.to_us() - y.to_us()