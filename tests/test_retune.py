#!/usr/bin/env python3
"""
Retune Unit Tests

Tests for the toggle-pin frequency cache, the cached retune search and
the start/stop model of a toggling channel.
"""

import sys
import os

# Project root for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from pwmcalc.retune import (FREQ_CACHE_SIZE, FREQUENCY_CHECKPOINTS, CacheEntry,
                            RetuneResult, ToggleChannel, build_frequency_cache,
                            nearest_entry, retune)


CLOCK = 72_000_000


def test_checkpoints():
    """1-10 Hz every 1 Hz, then 9 points per decade up to 100 kHz."""
    assert len(FREQUENCY_CHECKPOINTS) == 46
    assert FREQUENCY_CHECKPOINTS[:10] == tuple(range(1, 11))
    assert FREQUENCY_CHECKPOINTS[10:13] == (20, 30, 40)
    assert FREQUENCY_CHECKPOINTS[-1] == 100_000
    assert list(FREQUENCY_CHECKPOINTS) == sorted(set(FREQUENCY_CHECKPOINTS))
    assert len(FREQUENCY_CHECKPOINTS) <= FREQ_CACHE_SIZE
    print("PASS: test_checkpoints")


def test_cache_72mhz():
    """Every checkpoint fits a 16-bit timer at 72 MHz."""
    cache = build_frequency_cache(CLOCK, 16)
    assert len(cache) == 46
    by_freq = {entry.freq: entry for entry in cache}
    assert by_freq[1] == CacheEntry(1, 1098, 65513)
    assert by_freq[10] == CacheEntry(10, 109, 65453)
    assert by_freq[1000] == CacheEntry(1000, 1, 35999)
    assert by_freq[100_000] == CacheEntry(100_000, 0, 719)
    assert all(entry.arr <= 65535 for entry in cache)
    print("PASS: test_cache_72mhz")


def test_cache_skips_unreachable():
    """Checkpoints above the timer clock are left out."""
    cache = build_frequency_cache(50_000, 16)
    freqs = [entry.freq for entry in cache]
    assert len(cache) == 41
    assert max(freqs) == 50_000
    assert cache[-1] == CacheEntry(50_000, 0, 0)
    print("PASS: test_cache_skips_unreachable")


def test_nearest_entry():
    """Nearest checkpoint, ties resolved toward the lower one."""
    cache = build_frequency_cache(CLOCK, 16)
    assert nearest_entry(cache, 1000).freq == 1000
    assert nearest_entry(cache, 1400).freq == 1000
    assert nearest_entry(cache, 1500).freq == 1000
    assert nearest_entry(cache, 1600).freq == 2000
    assert nearest_entry(cache, 250_000).freq == 100_000
    assert nearest_entry([], 1000) is None
    print("PASS: test_nearest_entry")


def test_retune_exact_match():
    """Cached frequency is used directly."""
    cache = build_frequency_cache(CLOCK, 16)
    assert retune(cache, CLOCK, 16, 1000) == RetuneResult(1, 35999, 17999, 0, True)
    for entry in cache:
        result = retune(cache, CLOCK, 16, entry.freq)
        assert result.exact
        assert (result.prescaler, result.period) == (entry.psc, entry.arr)
    print("PASS: test_retune_exact_match")


def test_retune_refines_downward():
    """1.5 kHz seeds from 1 kHz (PSC=1) and drops to PSC=0."""
    cache = build_frequency_cache(CLOCK, 16)
    result = retune(cache, CLOCK, 16, 1500)
    assert (result.prescaler, result.period, result.pulse) == (0, 47999, 23999)
    assert result.iterations == 1
    assert not result.exact
    print("PASS: test_retune_refines_downward")


def test_retune_keeps_seed():
    """Seed prescaler already fits and keeps half the range."""
    cache = build_frequency_cache(CLOCK, 16)
    result = retune(cache, CLOCK, 16, 15)
    assert (result.prescaler, result.period) == (109, 43635)
    assert result.iterations == 0
    assert not result.exact
    result = retune(cache, CLOCK, 16, 25)
    assert (result.prescaler, result.period) == (54, 52362)
    print("PASS: test_retune_keeps_seed")


def test_retune_empty_cache():
    """Without a cache the search starts from PSC=0."""
    result = retune([], CLOCK, 16, 1500)
    assert (result.prescaler, result.period) == (0, 47999)
    assert result.iterations == 0
    print("PASS: test_retune_empty_cache")


def test_retune_fits_register():
    """Off-grid frequencies always land inside the register."""
    cache = build_frequency_cache(CLOCK, 16)
    for freq in (3, 17, 333, 1234, 4567, 12_345, 77_777, 150_000):
        result = retune(cache, CLOCK, 16, freq)
        assert 0 <= result.period <= 65535
        assert 0 <= result.prescaler <= 65535
        assert result.pulse == result.period // 2
    print("PASS: test_retune_fits_register")


def test_retune_zero_frequency():
    """Zero or negative frequency yields no registers."""
    cache = build_frequency_cache(CLOCK, 16)
    assert retune(cache, CLOCK, 16, 0) is None
    assert retune(cache, CLOCK, 16, -5) is None
    print("PASS: test_retune_zero_frequency")


def test_toggle_running_retune():
    """A running channel keeps running through a frequency change."""
    ch = ToggleChannel.create(CLOCK, 16, 1098, 65513)
    ch.init()
    ch.set_frequency(1000)
    assert ch.running
    assert (ch.prescaler, ch.period, ch.pulse) == (1, 35999, 17999)
    assert ch.frequency == 1000.0
    print("PASS: test_toggle_running_retune")


def test_toggle_logical_stop_survives():
    """After stop(), frequency changes update registers but stay stopped."""
    ch = ToggleChannel.create(CLOCK, 16, 1098, 65513)
    ch.init()
    ch.stop()
    ch.set_frequency(2000)
    assert not ch.running
    assert not ch.is_toggling()
    assert ch.frequency == 2000.0
    ch.start()
    assert ch.running
    assert ch.is_toggling()
    print("PASS: test_toggle_logical_stop_survives")


def test_toggle_hardware_stop():
    """Frequency 0 halts output but the next valid frequency restarts it."""
    ch = ToggleChannel.create(CLOCK, 16, 1, 35999)
    ch.init()
    assert ch.set_frequency(0) is None
    assert not ch.running
    assert ch.is_toggling()
    # Registers untouched
    assert (ch.prescaler, ch.period) == (1, 35999)
    ch.set_frequency(1000)
    assert ch.running
    print("PASS: test_toggle_hardware_stop")


def run_all_tests():
    """Run all retune unit tests."""
    tests = [
        test_checkpoints,
        test_cache_72mhz,
        test_cache_skips_unreachable,
        test_nearest_entry,
        test_retune_exact_match,
        test_retune_refines_downward,
        test_retune_keeps_seed,
        test_retune_empty_cache,
        test_retune_fits_register,
        test_retune_zero_frequency,
        test_toggle_running_retune,
        test_toggle_logical_stop_survives,
        test_toggle_hardware_stop,
    ]

    passed = 0
    failed = 0

    print("=" * 50)
    print("pwmcalc Retune Unit Tests")
    print("=" * 50)

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {test.__name__}: {e}")
            failed += 1

    print()
    print("=" * 50)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 50)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
