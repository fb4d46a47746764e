"""
pwmcalc Resolution Solver

Finds (prescaler, period) register pairs that realise a PWM frequency on
a timer with a 16-bit prescaler and a 16- or 32-bit auto-reload register.

    f_pwm = f_timer / ((PSC + 1) * (ARR + 1))

The search walks the prescaler upward from 0 so the first hits have the
longest period, i.e. the finest duty-cycle resolution.
"""

from typing import Optional

from .model import MAX_PRESCALER, ResolutionCandidate
from .numfmt import js_round


# Accepted relative frequency error
MAX_FREQUENCY_ERROR = 0.01

# Stop once the period falls below this many counts
MIN_USEFUL_PERIOD = 100

MAX_CANDIDATES = 20


def solve(system_clock_mhz: float, register_bit_width: int,
          target_frequency_hz: float) -> list[ResolutionCandidate]:
    """List candidates within 1% of the target, highest resolution first.

    Returns an empty list when nothing fits, or when the clock or the
    target frequency is not positive.
    """
    if target_frequency_hz <= 0 or system_clock_mhz <= 0:
        return []

    timer_clock = system_clock_mhz * 1_000_000
    max_period = 2 ** register_bit_width - 1
    target_counts = timer_clock / target_frequency_hz
    candidates: list[ResolutionCandidate] = []

    for psc in range(MAX_PRESCALER + 1):
        period = js_round(target_counts / (psc + 1)) - 1

        if 0 < period <= max_period:
            actual = timer_clock / ((psc + 1) * (period + 1))
            error = abs(actual - target_frequency_hz) / target_frequency_hz
            if error < MAX_FREQUENCY_ERROR:
                candidates.append(ResolutionCandidate(psc, period, actual))

        if period < MIN_USEFUL_PERIOD or len(candidates) >= MAX_CANDIDATES:
            break

    candidates.sort(key=lambda c: c.period, reverse=True)
    return candidates


def solve_dynamic(system_clock_mhz: float, register_bit_width: int,
                  target_frequency_hz: float) -> Optional[ResolutionCandidate]:
    """Lowest prescaler whose period fits the register, no error check.

    Used when the frequency changes at runtime and the candidate list is
    not offered to the user. Returns None when no prescaler fits.
    """
    if target_frequency_hz <= 0 or system_clock_mhz <= 0:
        return None

    timer_clock = system_clock_mhz * 1_000_000
    max_period = 2 ** register_bit_width - 1
    target_counts = timer_clock / target_frequency_hz

    psc = 0
    period = js_round(target_counts) - 1
    while period > max_period and psc < MAX_PRESCALER:
        psc += 1
        period = js_round(target_counts / (psc + 1)) - 1

    if period < 0:
        # Target above the timer clock
        return None
    if period > max_period:
        # Too slow even at the largest prescaler
        return None

    actual = timer_clock / ((psc + 1) * (period + 1))
    return ResolutionCandidate(psc, period, actual)


def find_candidate(candidates: list[ResolutionCandidate],
                   key: str) -> Optional[ResolutionCandidate]:
    """Look up a candidate by its selection key."""
    for candidate in candidates:
        if candidate.key == key:
            return candidate
    return None
