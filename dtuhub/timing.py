"""Millisecond clock, timeouts and "every N time periods" triggers."""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum

Clock = Callable[[], int]

_START_NS = time.monotonic_ns()
_U32 = 0xFFFFFFFF


def millis() -> int:
    """Milliseconds since start-up as a wrapping 32-bit value."""
    return ((time.monotonic_ns() - _START_NS) // 1_000_000) & _U32


def div1024_32_16(value: int) -> int:
    """Divide a 32-bit value by 1024 and keep the low 16 bits."""
    return (value >> 10) & 0xFFFF


class TimeUnit(Enum):
    """Unit of an :class:`EveryN` counter: (bit width, milliseconds per tick)."""

    MILLIS = (32, 1)
    SECONDS = (16, 1000)
    BSECONDS = (16, 1024)
    MINUTES = (16, 60_000)
    HOURS = (8, 3_600_000)

    @property
    def mask(self) -> int:
        return (1 << self.value[0]) - 1

    def from_millis(self, ms: int) -> int:
        ms &= _U32
        if self is TimeUnit.BSECONDS:
            return div1024_32_16(ms)
        return (ms // self.value[1]) & self.mask


class Timeout:
    """A deadline measured in milliseconds from the moment it is set."""

    def __init__(self, clock: Clock = millis) -> None:
        self._clock = clock
        self._start = 0
        self._timeout = 0

    def set(self, ms: int) -> None:
        self._timeout = ms & _U32
        self._start = self._clock() & _U32

    def extend(self, ms: int) -> None:
        self._timeout = (self._timeout + ms) & _U32

    def occurred(self) -> bool:
        return (self._clock() & _U32) > ((self._start + self._timeout) & _U32)


class EveryN:
    """Fires once every ``period`` units; truthiness checks and re-arms."""

    def __init__(
        self, period: int = 1, unit: TimeUnit = TimeUnit.MILLIS, clock: Clock = millis
    ) -> None:
        self.unit = unit
        self._clock = clock
        self.period = period & unit.mask
        self.last_trigger = 0
        self.reset()

    def time(self) -> int:
        return self.unit.from_millis(self._clock())

    def elapsed(self) -> int:
        return (self.time() - self.last_trigger) & self.unit.mask

    def remaining(self) -> int:
        return (self.period - self.elapsed()) & self.unit.mask

    def ready(self) -> bool:
        is_ready = self.elapsed() >= self.period
        if is_ready:
            self.reset()
        return is_ready

    def reset(self) -> None:
        self.last_trigger = self.time()

    def trigger(self) -> None:
        self.last_trigger = (self.time() - self.period) & self.unit.mask

    def __bool__(self) -> bool:
        return self.ready()