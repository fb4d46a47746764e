"""
Runtime frequency retuning (toggle-pin preset).

The generated firmware keeps a small table of precomputed register pairs
at fixed frequency checkpoints and seeds its prescaler search from the
nearest one. This module builds that table and models the setter on the
host with the same 32-bit integer arithmetic the C code uses.
"""

from dataclasses import dataclass, field
from typing import Optional

from .model import MAX_PRESCALER


FREQ_CACHE_SIZE = 50


def _checkpoints() -> list[int]:
    points = list(range(1, 11))
    for decade in (10, 100, 1000, 10000):
        points.extend((i + 2) * decade for i in range(9))
    return points


# 1-10 Hz every 1 Hz, then 9 steps per decade up to 100 kHz
FREQUENCY_CHECKPOINTS: tuple[int, ...] = tuple(_checkpoints())


def _u32(value: int) -> int:
    return value & 0xFFFFFFFF


@dataclass(frozen=True)
class CacheEntry:
    """One precomputed checkpoint."""
    freq: int
    psc: int
    arr: int


@dataclass(frozen=True)
class RetuneResult:
    """Register values chosen for a new frequency."""
    prescaler: int
    period: int
    pulse: int
    iterations: int = 0  # Refinement steps after the cache lookup
    exact: bool = False  # Taken straight from the cache


def _fit_prescaler(target_counts: int, max_period: int) -> tuple[int, int]:
    psc = 0
    arr = _u32(target_counts - 1)
    while arr > max_period and psc < MAX_PRESCALER:
        psc += 1
        arr = _u32(target_counts // (psc + 1) - 1)
    return psc, arr


def build_frequency_cache(timer_clock_hz: int,
                          register_bit_width: int) -> list[CacheEntry]:
    """Precompute (freq, psc, arr) at every checkpoint that fits."""
    max_period = 2 ** register_bit_width - 1
    cache: list[CacheEntry] = []

    for freq in FREQUENCY_CHECKPOINTS:
        if len(cache) >= FREQ_CACHE_SIZE:
            break
        psc, arr = _fit_prescaler(int(timer_clock_hz) // freq, max_period)
        if arr <= max_period:
            cache.append(CacheEntry(freq, psc, arr))

    return cache


def nearest_entry(cache: list[CacheEntry],
                  frequency_hz: int) -> Optional[CacheEntry]:
    """Closest checkpoint; ties go to the earlier (lower) entry."""
    best: Optional[CacheEntry] = None
    min_diff = 0xFFFFFFFF
    for entry in cache:
        diff = abs(entry.freq - frequency_hz)
        if diff < min_diff:
            min_diff = diff
            best = entry
            if diff == 0:
                break
    return best


def retune(cache: list[CacheEntry], timer_clock_hz: int,
           register_bit_width: int, frequency_hz: int) -> Optional[RetuneResult]:
    """Registers for frequency_hz, seeded from the nearest cache entry.

    Returns None for frequency_hz <= 0, which the firmware treats as a
    hardware stop.
    """
    if frequency_hz <= 0:
        return None

    max_period = 2 ** register_bit_width - 1
    nearest = nearest_entry(cache, frequency_hz)

    if nearest is not None and nearest.freq == frequency_hz:
        return RetuneResult(nearest.psc, nearest.arr, nearest.arr // 2, exact=True)

    target_counts = int(timer_clock_hz) // frequency_hz
    psc = nearest.psc if nearest is not None else 0
    arr = _u32(target_counts // (psc + 1) - 1)
    iterations = 0

    while arr > max_period and psc < MAX_PRESCALER:
        psc += 1
        arr = _u32(target_counts // (psc + 1) - 1)
        iterations += 1

    # Reclaim resolution the seed gave away
    while arr < max_period // 2 and psc > 0:
        psc -= 1
        arr = _u32(target_counts // (psc + 1) - 1)
        iterations += 1
        if arr > max_period:
            psc += 1
            arr = _u32(target_counts // (psc + 1) - 1)
            break

    return RetuneResult(psc, arr, arr // 2, iterations)


@dataclass
class ToggleChannel:
    """Host model of the generated toggle-pin routines.

    running is the hardware output state; logically_stopped is the flag
    set by an explicit stop() and only cleared by start() or init().
    """
    timer_clock_hz: int
    register_bit_width: int
    prescaler: int
    period: int
    pulse: int = 0
    running: bool = False
    logically_stopped: bool = False
    cache: list[CacheEntry] = field(default_factory=list)

    @classmethod
    def create(cls, timer_clock_hz: int, register_bit_width: int,
               prescaler: int, period: int) -> "ToggleChannel":
        return cls(timer_clock_hz, register_bit_width, prescaler, period,
                   period // 2,
                   cache=build_frequency_cache(timer_clock_hz, register_bit_width))

    @property
    def frequency(self) -> float:
        return self.timer_clock_hz / ((self.prescaler + 1) * (self.period + 1))

    def is_toggling(self) -> bool:
        return not self.logically_stopped

    def init(self) -> None:
        self.logically_stopped = False
        self.running = True

    def start(self) -> None:
        self.logically_stopped = False
        if self.frequency > 0:
            self.running = True

    def stop(self) -> None:
        self.logically_stopped = True
        self.running = False

    def set_frequency(self, frequency_hz: int) -> Optional[RetuneResult]:
        was_running = self.is_toggling() and self.frequency > 0
        if was_running:
            self.running = False

        result = retune(self.cache, self.timer_clock_hz,
                        self.register_bit_width, frequency_hz)
        if result is None:
            # Hardware stop, registers untouched
            return None

        self.prescaler = result.prescaler
        self.period = result.period
        self.pulse = result.pulse

        if was_running and not self.logically_stopped:
            self.running = True
        return result
