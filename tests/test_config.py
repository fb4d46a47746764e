#!/usr/bin/env python3
"""
Settings Unit Tests

Tests for validation, preset defaults, settings files and candidate
selection.
"""

import json
import sys
import os
import tempfile
from dataclasses import replace
from pathlib import Path

# Project root for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from pwmcalc.config import (CalculatorSettings, ConfigError, apply_preset, calculate,
                            load_settings, preset_config, preset_warnings,
                            settings_from_dict, validate)
from pwmcalc.model import (ClockConfig, LedDimming, NamingConvention, StandardServo,
                           TogglePin)
from pwmcalc.presets import servo_angle_to_duty


def expect_error(settings, fragment=""):
    """Assert validate() rejects settings with a message containing fragment."""
    try:
        validate(settings)
    except ConfigError as e:
        assert fragment in str(e), f"{fragment!r} not in {e}"
        return
    raise AssertionError(f"accepted invalid settings: {settings}")


def test_defaults_select_highest_resolution():
    """Default settings pick PSC=1, ARR=35999."""
    calc = calculate(CalculatorSettings())
    assert len(calc.candidates) == 20
    assert calc.selected.key == "1-35999"
    assert not calc.dynamic
    print("PASS: test_defaults_select_highest_resolution")


def test_selected_resolution_is_kept():
    """A resolution key still on offer is honoured."""
    calc = calculate(CalculatorSettings(resolution="2-23999"))
    assert calc.selected.key == "2-23999"
    print("PASS: test_selected_resolution_is_kept")


def test_stale_resolution_falls_back():
    """A key no longer offered falls back to the first candidate."""
    calc = calculate(CalculatorSettings(resolution="9-9999"))
    assert calc.selected.key == "1-35999"
    print("PASS: test_stale_resolution_falls_back")


def test_no_candidates():
    """Nothing to select and nothing to render."""
    calc = calculate(CalculatorSettings(sys_clock_mhz=1, pwm_freq=2_000_000))
    assert calc.candidates == []
    assert calc.selected is None
    assert calc.render_params() is None
    print("PASS: test_no_candidates")


def test_render_params():
    """Settings map onto the generator's parameters."""
    settings = CalculatorSettings(timer="TIM4", channel=2, component_name="Fan",
                                  naming_convention="snake_case", duty_cycle=25)
    params = calculate(settings).render_params()
    assert params.clock == ClockConfig(72_000_000, 16)
    assert params.timer.handle == "htim4"
    assert params.timer.channel_macro == "TIM_CHANNEL_2"
    assert params.naming.convention is NamingConvention.SNAKE_CASE
    assert params.candidate.key == "1-35999"
    assert params.pulse == 9000
    assert params.preset is None
    print("PASS: test_render_params")


def test_servo_angle_to_duty():
    """Angle maps linearly onto 5-10% duty."""
    assert servo_angle_to_duty(90, 0, 180) == 7.5
    assert servo_angle_to_duty(45, 0, 180) == 6.25
    assert servo_angle_to_duty(0, 0, 180) == 5.0
    assert servo_angle_to_duty(180, 0, 180) == 10.0
    # Degenerate range is treated as 1 degree wide
    assert servo_angle_to_duty(0, 0, 0) == 5.0
    print("PASS: test_servo_angle_to_duty")


def test_apply_servo_preset():
    """Servo preset forces 50 Hz, 16-bit and the angle's duty."""
    settings = apply_preset(CalculatorSettings(arr_width=32, servo_initial_angle=45),
                            "standard-servo")
    assert settings.pwm_freq == 50
    assert settings.arr_width == 16
    assert settings.duty_cycle == 6.25
    assert preset_config(settings) == StandardServo(0, 180, 45)
    calc = calculate(settings)
    assert (calc.selected.prescaler, calc.selected.period) == (21, 65454)
    print("PASS: test_apply_servo_preset")


def test_apply_led_preset():
    """LED preset copies its frequency and brightness."""
    settings = apply_preset(CalculatorSettings(led_frequency=2000, led_initial_brightness=30),
                            "led-dimming")
    assert settings.pwm_freq == 2000
    assert settings.duty_cycle == 30
    assert preset_config(settings) == LedDimming(30)
    print("PASS: test_apply_led_preset")


def test_toggle_pin_uses_dynamic_solver():
    """Toggle pin skips the candidate list."""
    settings = apply_preset(CalculatorSettings(resolution="2-23999"), "toggle-pin")
    assert settings.pwm_freq == 1
    assert settings.duty_cycle == 50
    assert settings.resolution == ""
    calc = calculate(settings)
    assert calc.dynamic
    assert calc.candidates == []
    assert (calc.selected.prescaler, calc.selected.period) == (1098, 65513)
    assert calc.render_params().preset == TogglePin(50)
    print("PASS: test_toggle_pin_uses_dynamic_solver")


def test_unknown_preset():
    """Unknown preset key changes nothing else and fails validation."""
    base = CalculatorSettings()
    settings = apply_preset(base, "stepper")
    assert settings.preset == "stepper"
    assert settings.pwm_freq == base.pwm_freq
    assert preset_config(settings) is None
    expect_error(settings, "Unknown preset")
    print("PASS: test_unknown_preset")


def test_servo_preset_rejects_non_numeric_angles():
    """Servo angles are type-checked before the duty is derived."""
    for name in ("servo_min_angle", "servo_max_angle", "servo_initial_angle"):
        settings = replace(CalculatorSettings(), **{name: "zero"})
        try:
            apply_preset(settings, "standard-servo")
        except ConfigError as e:
            assert name in str(e)
        else:
            raise AssertionError(f"non-numeric {name} accepted")
    print("PASS: test_servo_preset_rejects_non_numeric_angles")


def test_validation_errors():
    """Out-of-range and malformed settings are rejected."""
    base = CalculatorSettings()
    expect_error(replace(base, pwm_freq=0), "frequency")
    expect_error(replace(base, pwm_freq=-10), "frequency")
    expect_error(replace(base, pwm_freq=float("nan")), "number")
    expect_error(replace(base, sys_clock_mhz=0), "clock")
    expect_error(replace(base, sys_clock_mhz=2000), "clock")
    expect_error(replace(base, sys_clock_mhz="72"), "number")
    expect_error(replace(base, arr_width=24), "width")
    expect_error(replace(base, duty_cycle=120), "Duty")
    expect_error(replace(base, duty_cycle=-1), "Duty")
    expect_error(replace(base, channel=5), "Channel")
    expect_error(replace(base, channel=True), "Channel")
    expect_error(replace(base, timer="TIM25"), "timer")
    expect_error(replace(base, timer="TIM 1", allow_custom_timer=True), "identifier")
    expect_error(replace(base, component_name="3abc"), "identifier")
    expect_error(replace(base, component_name=""), "identifier")
    expect_error(replace(base, naming_convention="kebab-case"), "naming convention")
    print("PASS: test_validation_errors")


def test_servo_validation():
    """Servo angles must form a range containing the initial angle."""
    servo = CalculatorSettings(preset="standard-servo")
    validate(servo)
    expect_error(replace(servo, servo_min_angle=90, servo_max_angle=90), "min angle")
    expect_error(replace(servo, servo_initial_angle=200), "initial angle")
    # Ignored when the preset is not active
    validate(CalculatorSettings(servo_min_angle=90, servo_max_angle=0))
    print("PASS: test_servo_validation")


def test_custom_timer():
    """Timers outside TIM1-TIM24 need the override."""
    expect_error(CalculatorSettings(timer="LPTIM1"), "timer")
    validate(CalculatorSettings(timer="LPTIM1", allow_custom_timer=True))
    print("PASS: test_custom_timer")


def test_preset_warnings():
    """Servo below 50 Hz warns but validates."""
    settings = replace(apply_preset(CalculatorSettings(), "standard-servo"), pwm_freq=40)
    validate(settings)
    assert len(preset_warnings(settings)) == 1
    assert preset_warnings(apply_preset(CalculatorSettings(), "standard-servo")) == []
    assert preset_warnings(CalculatorSettings(pwm_freq=10)) == []
    print("PASS: test_preset_warnings")


def test_settings_from_dict():
    """Known keys populate settings, unknown keys are rejected."""
    settings = settings_from_dict({"pwm_freq": 20000, "component_name": "Motor"})
    assert settings.pwm_freq == 20000
    assert settings.component_name == "Motor"
    assert settings.sys_clock_mhz == 72
    try:
        settings_from_dict({"pwm_freq": 1, "bogus": 2})
    except ConfigError as e:
        assert "bogus" in str(e)
    else:
        raise AssertionError("unknown key accepted")
    print("PASS: test_settings_from_dict")


def test_load_settings():
    """Settings files are JSON objects of setting names."""
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "pwm.json"
        path.write_text(json.dumps({"sys_clock_mhz": 168, "arr_width": 32,
                                    "pwm_freq": 20000, "preset": "led-dimming"}))
        settings = load_settings(path)
        assert settings.sys_clock_mhz == 168
        assert settings.arr_width == 32
        assert settings.preset == "led-dimming"

        bad = Path(tmp) / "bad.json"
        bad.write_text("{not json")
        for target in (bad, Path(tmp) / "missing.json"):
            try:
                load_settings(target)
            except ConfigError:
                pass
            else:
                raise AssertionError(f"{target} accepted")

        listing = Path(tmp) / "list.json"
        listing.write_text("[1, 2]")
        try:
            load_settings(listing)
        except ConfigError as e:
            assert "object" in str(e)
        else:
            raise AssertionError("JSON list accepted")
    print("PASS: test_load_settings")


def run_all_tests():
    """Run all settings unit tests."""
    tests = [
        test_defaults_select_highest_resolution,
        test_selected_resolution_is_kept,
        test_stale_resolution_falls_back,
        test_no_candidates,
        test_render_params,
        test_servo_angle_to_duty,
        test_apply_servo_preset,
        test_apply_led_preset,
        test_toggle_pin_uses_dynamic_solver,
        test_unknown_preset,
        test_servo_preset_rejects_non_numeric_angles,
        test_validation_errors,
        test_servo_validation,
        test_custom_timer,
        test_preset_warnings,
        test_settings_from_dict,
        test_load_settings,
    ]

    passed = 0
    failed = 0

    print("=" * 50)
    print("pwmcalc Settings Unit Tests")
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
