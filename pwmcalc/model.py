"""
pwmcalc Data Model

Value types shared by the solver, the code generator and the CLI.
Uses dataclasses for clean, immutable definitions.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .numfmt import format_si, js_round


# Largest value the 16-bit prescaler register can hold
MAX_PRESCALER = 65535

TIMER_NAMES: tuple[str, ...] = tuple(f"TIM{n}" for n in range(1, 25))

REGISTER_WIDTHS = (16, 32)


class NamingConvention(Enum):
    """Identifier styles for generated functions."""
    UPPERCASE = "UPPERCASE"
    PASCAL_CASE = "PascalCase"
    CAMEL_CASE = "camelCase"
    SNAKE_CASE = "snake_case"


class PresetKey(Enum):
    """Preset identifiers."""
    STANDARD_SERVO = "standard-servo"
    LED_DIMMING = "led-dimming"
    TOGGLE_PIN = "toggle-pin"


@dataclass(frozen=True)
class ClockConfig:
    """Timer input clock and counter width."""
    system_clock_hz: int
    register_bit_width: int = 16

    @classmethod
    def from_mhz(cls, mhz: float, register_bit_width: int = 16) -> "ClockConfig":
        return cls(int(js_round(mhz * 1_000_000)), register_bit_width)

    @property
    def system_clock_mhz(self) -> float:
        return self.system_clock_hz / 1_000_000

    @property
    def max_period(self) -> int:
        return 2 ** self.register_bit_width - 1


@dataclass(frozen=True)
class ResolutionCandidate:
    """One achievable (prescaler, period) pair."""
    prescaler: int
    period: int
    actual_frequency_hz: float

    @property
    def resolution_steps(self) -> int:
        return self.period + 1

    @property
    def key(self) -> str:
        """Selection token, unique per (psc, arr) pair."""
        return f"{self.prescaler}-{self.period}"

    @property
    def label(self) -> str:
        return f"{format_si(self.resolution_steps)} steps"

    def error(self, target_frequency_hz: float) -> float:
        """Relative frequency error against the requested frequency."""
        return abs(self.actual_frequency_hz - target_frequency_hz) / target_frequency_hz


@dataclass(frozen=True)
class TimerSelection:
    """Timer peripheral and output channel."""
    timer_name: str = "TIM1"
    channel: int = 1

    @property
    def handle(self) -> str:
        """CubeMX handle variable name, e.g. htim1."""
        return f"h{self.timer_name.lower()}"

    @property
    def channel_macro(self) -> str:
        return f"TIM_CHANNEL_{self.channel}"


@dataclass(frozen=True)
class DutyCycleSetting:
    """Duty cycle as a percentage of the period."""
    percent: float = 50

    def pulse(self, period: int) -> int:
        """Compare value (CCR) for the given period, rounded half up."""
        return int(js_round(self.percent / 100 * period))


# Presets

@dataclass(frozen=True)
class StandardServo:
    """Hobby servo driven at 50 Hz, 1-2 ms pulses."""
    min_angle: float = 0
    max_angle: float = 180
    initial_angle: float = 90
    key: PresetKey = field(default=PresetKey.STANDARD_SERVO, init=False)


@dataclass(frozen=True)
class LedDimming:
    """Brightness control, brightness equals duty cycle."""
    initial_brightness: float = 50
    key: PresetKey = field(default=PresetKey.LED_DIMMING, init=False)


@dataclass(frozen=True)
class TogglePin:
    """Square wave with runtime frequency retuning."""
    duty_cycle: float = 50
    key: PresetKey = field(default=PresetKey.TOGGLE_PIN, init=False)


PresetConfig = Union[StandardServo, LedDimming, TogglePin]


@dataclass(frozen=True)
class PresetInfo:
    """Display information for a preset."""
    key: PresetKey
    label: str
    description: str


PRESETS: tuple[PresetInfo, ...] = (
    PresetInfo(PresetKey.STANDARD_SERVO, "Standard Servo",
               "50 Hz PWM with 1-2 ms pulse width for angle control"),
    PresetInfo(PresetKey.LED_DIMMING, "LED Dimming",
               "1 kHz PWM for flicker-free brightness control"),
    PresetInfo(PresetKey.TOGGLE_PIN, "Toggle Pin",
               "50% square wave with fast runtime frequency changes"),
)


@dataclass(frozen=True)
class NamingConfig:
    """Component name and identifier style."""
    component_name: str = "Component"
    # A NamingConvention, or a raw string which may be unrecognised
    convention: Union[NamingConvention, str] = NamingConvention.PASCAL_CASE

    @property
    def header_name(self) -> str:
        return f"{self.component_name.lower()}.h"

    @property
    def source_name(self) -> str:
        return f"{self.component_name.lower()}.c"


@dataclass(frozen=True)
class RenderParams:
    """Everything the code generator needs for one component."""
    timer: TimerSelection
    duty: DutyCycleSetting
    naming: NamingConfig
    candidate: ResolutionCandidate
    clock: ClockConfig
    frequency_hz: float
    preset: Optional[PresetConfig] = None

    @property
    def pulse(self) -> int:
        return self.duty.pulse(self.candidate.period)


@dataclass(frozen=True)
class CodeTemplates:
    """The three generated text artifacts."""
    header_only: str
    header: str
    source: str


def is_finite_number(value) -> bool:
    """Check that value is a real, finite int or float (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
