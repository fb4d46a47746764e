#!/usr/bin/env python3
"""
pwmcalc CLI - STM32 PWM timer calculator

Usage:
    pwmcalc solve --clock 72 --freq 1000
    pwmcalc generate --name Servo --preset standard-servo -o build/
    pwmcalc presets
    pwmcalc names --name Led
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .codegen_c import render, render_settings
from .config import (
    TOGGLE_PIN_DUTY, CalculatorSettings, ConfigError, apply_preset, calculate,
    load_settings, preset_warnings,
)
from .model import PRESETS, NamingConvention, PresetKey
from .naming import naming_preview


# CLI flag -> CalculatorSettings field
GENERAL_OPTIONS = {
    "clock": "sys_clock_mhz",
    "freq": "pwm_freq",
    "width": "arr_width",
    "duty": "duty_cycle",
    "timer": "timer",
    "channel": "channel",
    "resolution": "resolution",
    "name": "component_name",
    "naming": "naming_convention",
}

PRESET_OPTIONS = {
    "min_angle": "servo_min_angle",
    "max_angle": "servo_max_angle",
    "initial_angle": "servo_initial_angle",
    "led_freq": "led_frequency",
    "brightness": "led_initial_brightness",
    "toggle_freq": "toggle_pin_frequency",
}


def _overrides(args: argparse.Namespace, options: dict[str, str]) -> dict:
    values = {}
    for flag, name in options.items():
        value = getattr(args, flag, None)
        if value is not None:
            values[name] = value
    return values


def build_settings(args: argparse.Namespace) -> CalculatorSettings:
    """Settings from --config, then preset parameters, preset, explicit flags.

    The toggle pin keeps its fixed duty cycle whatever --duty says.
    """
    settings = load_settings(args.config) if args.config else CalculatorSettings()
    settings = replace(settings, **_overrides(args, PRESET_OPTIONS))
    if args.allow_custom_timer:
        settings = replace(settings, allow_custom_timer=True)

    preset = args.preset if args.preset is not None else settings.preset
    if preset:
        settings = apply_preset(settings, preset)

    settings = replace(settings, **_overrides(args, GENERAL_OPTIONS))
    if settings.preset == PresetKey.TOGGLE_PIN.value and settings.duty_cycle != TOGGLE_PIN_DUTY:
        print(f"Warning: toggle pin runs at {TOGGLE_PIN_DUTY}% duty, "
              f"ignoring duty {settings.duty_cycle}", file=sys.stderr)
        settings = replace(settings, duty_cycle=TOGGLE_PIN_DUTY)
    return settings


def cmd_solve(args: argparse.Namespace) -> int:
    """List achievable resolutions."""
    try:
        settings = build_settings(args)
        calc = calculate(settings)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if calc.dynamic:
        pair = calc.selected
        if pair is None:
            print("Error: no valid resolution", file=sys.stderr)
            return 1
        print(f"Dynamic resolution: PSC={pair.prescaler} ARR={pair.period} ({pair.label})")
        return 0

    if not calc.candidates:
        print(f"Error: no valid resolution for {settings.pwm_freq} Hz at "
              f"{settings.sys_clock_mhz} MHz ({settings.arr_width}-bit)", file=sys.stderr)
        return 1

    print(f"{'KEY':<16}{'PSC':>7}{'ARR':>12}  {'RESOLUTION':<14}{'FREQUENCY':>16}{'ERROR':>10}")
    for c in calc.candidates:
        error = c.error(settings.pwm_freq) * 100
        mark = "*" if c is calc.selected else " "
        print(f"{c.key:<16}{c.prescaler:>7}{c.period:>12}  {c.label:<14}"
              f"{c.actual_frequency_hz:>13.3f} Hz{error:>9.3f}%{mark}")
    if args.verbose:
        print(f"{len(calc.candidates)} candidates within 1%", file=sys.stderr)
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate the C component."""
    try:
        settings = build_settings(args)
        calc = calculate(settings)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for warning in preset_warnings(settings):
        print(f"Warning: {warning}", file=sys.stderr)

    params = calc.render_params()
    if params is None:
        print("Error: no valid resolution, nothing to generate", file=sys.stderr)
        return 1

    if args.resolution and not calc.dynamic and params.candidate.key != args.resolution:
        print(f"Warning: resolution {args.resolution} not available, "
              f"using {params.candidate.key}", file=sys.stderr)
    if args.verbose:
        c = params.candidate
        print(f"Using PSC={c.prescaler} ARR={c.period} ({c.label}, "
              f"{c.actual_frequency_hz:.3f} Hz)", file=sys.stderr)

    templates = render(params)
    naming = params.naming
    if args.mode == "header-only":
        files = [(naming.header_name, templates.header_only)]
    else:
        files = [(naming.header_name, templates.header), (naming.source_name, templates.source)]

    if args.settings:
        print(render_settings(params))

    if args.output:
        out_dir = Path(args.output)
        out_dir.mkdir(parents=True, exist_ok=True)
        for name, text in files:
            (out_dir / name).write_text(text, encoding="utf-8")
            print(f"Wrote {out_dir / name}", file=sys.stderr)
    else:
        for name, text in files:
            print(f"/* ===== {name} ===== */")
            print(text)

    return 0


def cmd_presets(args: argparse.Namespace) -> int:
    """List presets."""
    for preset in PRESETS:
        print(f"{preset.key.value:<16}{preset.label:<16}{preset.description}")
    return 0


def cmd_names(args: argparse.Namespace) -> int:
    """Preview naming conventions for a component name."""
    name = args.name or CalculatorSettings.component_name
    for convention in NamingConvention:
        print(f"{convention.value:<12}{naming_preview(name, convention)}")
    return 0


def add_calculator_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--clock", type=float, help="Timer clock in MHz (default 72)")
    parser.add_argument("--freq", type=float, help="PWM frequency in Hz (default 1000)")
    parser.add_argument("--width", type=int, choices=(16, 32), help="ARR width in bits (default 16)")
    parser.add_argument("--duty", type=float, help="Duty cycle in percent (default 50)")
    parser.add_argument("--timer", help="Timer name, TIM1-TIM24 (default TIM1)")
    parser.add_argument("--allow-custom-timer", action="store_true",
                        help="Accept timer names outside TIM1-TIM24")
    parser.add_argument("--channel", type=int, help="Timer channel 1-4 (default 1)")
    parser.add_argument("--resolution", help="Candidate key PSC-ARR (default: highest resolution)")
    parser.add_argument("--name", help="Component name (default Component)")
    parser.add_argument("--naming", help="UPPERCASE, PascalCase, camelCase or snake_case")
    parser.add_argument("--preset", help="standard-servo, led-dimming or toggle-pin")
    parser.add_argument("--min-angle", dest="min_angle", type=float, help="Servo min angle")
    parser.add_argument("--max-angle", dest="max_angle", type=float, help="Servo max angle")
    parser.add_argument("--initial-angle", dest="initial_angle", type=float,
                        help="Servo initial angle")
    parser.add_argument("--led-freq", dest="led_freq", type=float, help="LED PWM frequency in Hz")
    parser.add_argument("--brightness", type=float, help="LED initial brightness in percent")
    parser.add_argument("--toggle-freq", dest="toggle_freq", type=float,
                        help="Toggle pin initial frequency in Hz")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print solver details")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pwmcalc",
        description="pwmcalc - STM32 PWM timer calculator and code generator"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Solve command
    solve_parser = subparsers.add_parser("solve", help="List PSC/ARR candidates")
    add_calculator_options(solve_parser)
    solve_parser.set_defaults(func=cmd_solve)

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate C driver code")
    add_calculator_options(gen_parser)
    gen_parser.add_argument("--mode", choices=("pair", "header-only"), default="pair",
                            help="Header/source pair or a single header-only file")
    gen_parser.add_argument("-o", "--output", help="Output directory (default: stdout)")
    gen_parser.add_argument("--settings", action="store_true",
                            help="Also print the CubeMX timer settings")
    gen_parser.set_defaults(func=cmd_generate)

    # Presets command
    presets_parser = subparsers.add_parser("presets", help="List presets")
    presets_parser.set_defaults(func=cmd_presets)

    # Names command
    names_parser = subparsers.add_parser("names", help="Preview naming conventions")
    names_parser.add_argument("--name", help="Component name")
    names_parser.set_defaults(func=cmd_names)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
