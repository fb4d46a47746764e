"""
Identifier naming for generated code.

Function names follow the selected NamingConvention. Private state
variables carry a hash of the component name so several generated
components can share one compilation unit.
"""

import re
from typing import Union

from .model import NamingConvention


_CAPITAL = re.compile(r"([A-Z])")


def hash8(value: str) -> str:
    """Deterministic 32-bit rolling hash (x31) as up to 8 hex digits."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    # Reinterpret as signed 32-bit
    if h & 0x80000000:
        h -= 1 << 32
    return format(abs(h), "x")[:8]


def var_prefix(component_name: str) -> str:
    """Prefix for private variables, e.g. 'pwm_13726' for 'PWM'."""
    return f"{component_name.lower()}_{hash8(component_name)}"


def split_capitals(base_name: str) -> str:
    """'SetDutyCycle' -> 'Set_Duty_Cycle'."""
    return re.sub(r"^_", "", _CAPITAL.sub(r"_\1", base_name))


def format_function_name(component_name: str,
                         convention: Union[NamingConvention, str],
                         base_name: str) -> str:
    """Exported function name for base_name under the naming convention.

    Unrecognised conventions fall back to 'Component_Base'.
    """
    if isinstance(convention, NamingConvention):
        convention = convention.value

    match convention:
        case "UPPERCASE":
            return f"{component_name.upper()}_{split_capitals(base_name).upper()}"
        case "PascalCase":
            return f"{component_name}{base_name}"
        case "camelCase":
            return f"{component_name.lower()}{base_name}"
        case "snake_case":
            return f"{component_name.lower()}_{split_capitals(base_name).lower()}"
        case _:
            return f"{component_name}_{base_name}"


def naming_preview(component_name: str,
                   convention: Union[NamingConvention, str]) -> str:
    """Example name shown next to each convention choice."""
    return format_function_name(component_name, convention, "Init")


def parse_convention(value: str) -> Union[NamingConvention, str]:
    """Map a string to a NamingConvention, leaving unknown strings as-is."""
    for convention in NamingConvention:
        if convention.value == value:
            return convention
    return value
