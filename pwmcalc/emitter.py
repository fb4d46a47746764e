"""
Line buffer and shared naming context for C code generation.
"""

from dataclasses import dataclass, field
from typing import Callable

from .model import RenderParams
from .naming import format_function_name, hash8, var_prefix
from .numfmt import js_number


class CodeBuffer:
    """Accumulates lines of C text."""

    def __init__(self):
        self.lines: list[str] = []

    def emit(self, line: str = "") -> None:
        """Emit a line."""
        self.lines.append(line)

    def emit_lines(self, lines: list[str]) -> None:
        self.lines.extend(lines)

    def emit_doc(self, brief: str, *tags: str) -> None:
        """Emit a Doxygen block: brief plus '@param ...', '@return ...' tags."""
        self.emit("/**")
        self.emit(f" * @brief {brief}")
        for tag in tags:
            self.emit(f" * {tag}")
        self.emit(" */")

    def emit_section(self, title: str) -> None:
        """Emit a CubeMX-style section banner padded to 80 columns."""
        text = f"/* {title} "
        self.emit(text + "-" * max(0, 78 - len(text)) + "*/")

    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass
class GenContext:
    """Derived names and values shared by every generated artifact."""
    params: RenderParams
    format_name: Callable[[str], str] = field(init=False)
    component: str = field(init=False)
    upper: str = field(init=False)
    prefix: str = field(init=False)
    name_hash: str = field(init=False)

    def __post_init__(self):
        naming = self.params.naming
        self.component = naming.component_name
        self.upper = naming.component_name.upper()
        self.prefix = var_prefix(naming.component_name)
        self.name_hash = hash8(naming.component_name)
        self.format_name = lambda base: format_function_name(
            naming.component_name, naming.convention, base)

    @property
    def handle(self) -> str:
        return self.params.timer.handle

    @property
    def channel(self) -> int:
        return self.params.timer.channel

    @property
    def channel_macro(self) -> str:
        return self.params.timer.channel_macro

    @property
    def max_period(self) -> int:
        return self.params.clock.max_period

    @property
    def register_bit_width(self) -> int:
        return self.params.clock.register_bit_width

    @property
    def timer_clock_hz(self) -> int:
        return self.params.clock.system_clock_hz

    @property
    def clock_comment(self) -> str:
        return f"{js_number(self.params.clock.system_clock_mhz)} MHz"

    @property
    def prefix_upper(self) -> str:
        return self.prefix.upper()

    def var(self, name: str) -> str:
        """Private variable name, e.g. var('pulse') -> 'pwm_13726_pulse'."""
        return f"{self.prefix}_{name}"

    @staticmethod
    def fn_kw(inline: bool) -> str:
        return "static inline " if inline else ""
