"""
pwmcalc Settings

Holds the user-facing settings, applies preset defaults, validates input
and turns settings into a register selection and RenderParams. The solver
and the generator assume validated input; everything that can be wrong
with user input is rejected here.
"""

import json
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

from .model import (
    REGISTER_WIDTHS, TIMER_NAMES, ClockConfig, DutyCycleSetting, LedDimming,
    NamingConfig, NamingConvention, PresetConfig, PresetKey, RenderParams,
    ResolutionCandidate, StandardServo, TimerSelection, TogglePin,
    is_finite_number,
)
from .naming import parse_convention
from .presets import servo_angle_to_duty
from .solver import find_candidate, solve, solve_dynamic


MIN_CLOCK_MHZ = 1
MAX_CLOCK_MHZ = 1000

# Servos expect a 20 ms frame
SERVO_MIN_FREQUENCY = 50

SERVO_ANGLE_FIELDS = ("servo_min_angle", "servo_max_angle", "servo_initial_angle")

# Toggle pin output is always a square wave
TOGGLE_PIN_DUTY = 50

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ConfigError(Exception):
    """Invalid calculator settings."""
    pass


@dataclass
class CalculatorSettings:
    """Calculator inputs with their defaults."""
    sys_clock_mhz: float = 72
    pwm_freq: float = 1000
    arr_width: int = 16
    duty_cycle: float = 50
    timer: str = "TIM1"
    channel: int = 1
    allow_custom_timer: bool = False
    resolution: str = ""  # Selected candidate key, empty for the first
    component_name: str = "Component"
    naming_convention: str = NamingConvention.PASCAL_CASE.value
    preset: str = ""
    # Preset parameters
    servo_min_angle: float = 0
    servo_max_angle: float = 180
    servo_initial_angle: float = 90
    led_frequency: float = 1000
    led_initial_brightness: float = 50
    toggle_pin_frequency: float = 1


@dataclass
class Calculation:
    """Candidates for the current settings and the chosen pair, if any."""
    settings: CalculatorSettings
    candidates: list[ResolutionCandidate] = field(default_factory=list)
    selected: Optional[ResolutionCandidate] = None

    @property
    def dynamic(self) -> bool:
        """True when the pair comes from solve_dynamic (toggle-pin)."""
        return self.settings.preset == PresetKey.TOGGLE_PIN.value

    def render_params(self) -> Optional[RenderParams]:
        """RenderParams for the generator, or None if nothing was selected."""
        if self.selected is None:
            return None
        s = self.settings
        return RenderParams(
            timer=TimerSelection(s.timer, s.channel),
            duty=DutyCycleSetting(s.duty_cycle),
            naming=NamingConfig(s.component_name, parse_convention(s.naming_convention)),
            candidate=self.selected,
            clock=ClockConfig.from_mhz(s.sys_clock_mhz, s.arr_width),
            frequency_hz=s.pwm_freq,
            preset=preset_config(s),
        )


def settings_from_dict(data: dict) -> CalculatorSettings:
    """Build settings from a mapping of field names, rejecting unknown keys."""
    known = {f.name for f in fields(CalculatorSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")
    return CalculatorSettings(**data)


def load_settings(path: Path) -> CalculatorSettings:
    """Read settings from a JSON file."""
    try:
        data = json.loads(Path(path).read_text())
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e.strerror}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return settings_from_dict(data)


def apply_preset(settings: CalculatorSettings, preset: str) -> CalculatorSettings:
    """Return settings with the preset's frequency, duty and width applied.

    An empty or unknown preset key leaves everything else unchanged.
    """
    match preset:
        case "standard-servo":
            for name in SERVO_ANGLE_FIELDS:
                _require_number(name, getattr(settings, name))
            duty = servo_angle_to_duty(settings.servo_initial_angle,
                                       settings.servo_min_angle, settings.servo_max_angle)
            return replace(settings, preset=preset, pwm_freq=50, duty_cycle=duty, arr_width=16)
        case "led-dimming":
            return replace(settings, preset=preset, pwm_freq=settings.led_frequency,
                           duty_cycle=settings.led_initial_brightness, arr_width=16)
        case "toggle-pin":
            return replace(settings, preset=preset, pwm_freq=settings.toggle_pin_frequency,
                           duty_cycle=TOGGLE_PIN_DUTY, arr_width=16, resolution="")
        case _:
            return replace(settings, preset=preset)


def preset_config(settings: CalculatorSettings) -> Optional[PresetConfig]:
    """The preset variant named by settings.preset."""
    match settings.preset:
        case "standard-servo":
            return StandardServo(settings.servo_min_angle, settings.servo_max_angle,
                                 settings.servo_initial_angle)
        case "led-dimming":
            return LedDimming(settings.led_initial_brightness)
        case "toggle-pin":
            return TogglePin(settings.duty_cycle)
        case _:
            return None


def _require_number(name: str, value) -> None:
    if not is_finite_number(value):
        raise ConfigError(f"{name} must be a number, got {value!r}")


def validate(settings: CalculatorSettings) -> None:
    """Reject settings the solver and generator cannot handle."""
    s = settings
    for name in ("sys_clock_mhz", "pwm_freq", "duty_cycle"):
        _require_number(name, getattr(s, name))
    for name in ("timer", "resolution", "component_name", "naming_convention", "preset"):
        if not isinstance(getattr(s, name), str):
            raise ConfigError(f"{name} must be a string, got {getattr(s, name)!r}")

    if s.pwm_freq <= 0:
        raise ConfigError(f"PWM frequency must be positive, got {s.pwm_freq}")
    if not MIN_CLOCK_MHZ <= s.sys_clock_mhz <= MAX_CLOCK_MHZ:
        raise ConfigError(f"System clock must be {MIN_CLOCK_MHZ}-{MAX_CLOCK_MHZ} MHz, "
                          f"got {s.sys_clock_mhz}")
    if type(s.arr_width) is not int or s.arr_width not in REGISTER_WIDTHS:
        raise ConfigError(f"Register width must be 16 or 32 bits, got {s.arr_width}")
    if not 0 <= s.duty_cycle <= 100:
        raise ConfigError(f"Duty cycle must be 0-100%, got {s.duty_cycle}")
    if isinstance(s.channel, bool) or not isinstance(s.channel, int) or not 1 <= s.channel <= 4:
        raise ConfigError(f"Channel must be 1-4, got {s.channel!r}")
    if s.timer not in TIMER_NAMES and not s.allow_custom_timer:
        raise ConfigError(f"Unknown timer {s.timer!r} (use TIM1-TIM24 or allow a custom timer)")
    if not _IDENTIFIER.fullmatch(s.timer):
        raise ConfigError(f"Timer name {s.timer!r} is not a valid C identifier")
    if not _IDENTIFIER.fullmatch(s.component_name):
        raise ConfigError(f"Component name {s.component_name!r} is not a valid C identifier")
    if not isinstance(parse_convention(s.naming_convention), NamingConvention):
        choices = ", ".join(c.value for c in NamingConvention)
        raise ConfigError(f"Unknown naming convention {s.naming_convention!r} (choose {choices})")
    if s.preset and s.preset not in {p.value for p in PresetKey}:
        raise ConfigError(f"Unknown preset {s.preset!r}")

    if s.preset == PresetKey.STANDARD_SERVO.value:
        for name in SERVO_ANGLE_FIELDS:
            _require_number(name, getattr(s, name))
        if s.servo_min_angle >= s.servo_max_angle:
            raise ConfigError("Servo min angle must be below max angle")
        if not s.servo_min_angle <= s.servo_initial_angle <= s.servo_max_angle:
            raise ConfigError("Servo initial angle must be within min/max angle")


def preset_warnings(settings: CalculatorSettings) -> list[str]:
    """Non-fatal hints about preset parameters."""
    warnings = []
    if settings.preset == PresetKey.STANDARD_SERVO.value and settings.pwm_freq < SERVO_MIN_FREQUENCY:
        warnings.append(f"PWM frequency {settings.pwm_freq} Hz is below "
                        f"{SERVO_MIN_FREQUENCY} Hz expected by standard servos")
    return warnings


def calculate(settings: CalculatorSettings) -> Calculation:
    """Validate settings, run the solver and pick a register pair.

    The toggle-pin preset computes its pair directly. Otherwise the
    selected resolution key is used if it is still offered, falling back
    to the highest-resolution candidate.
    """
    validate(settings)
    s = settings

    if s.preset == PresetKey.TOGGLE_PIN.value:
        return Calculation(s, [], solve_dynamic(s.sys_clock_mhz, s.arr_width, s.pwm_freq))

    candidates = solve(s.sys_clock_mhz, s.arr_width, s.pwm_freq)
    if not candidates:
        return Calculation(s, candidates, None)

    selected = find_candidate(candidates, s.resolution) if s.resolution else None
    return Calculation(s, candidates, selected or candidates[0])
