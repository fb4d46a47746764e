"""
pwmcalc C Code Generator

Generates an STM32 HAL PWM driver component in three forms:

- header-only: one .h with static state and 'static inline' functions
- header: declarations only, pairs with the source file
- source: definitions, includes the header

All three are rendered from one list of function definitions so the
exported names, the state variables and the register constants always
agree between them.
"""

from dataclasses import dataclass, field

from .emitter import CodeBuffer, GenContext
from .model import CodeTemplates, RenderParams
from .numfmt import js_number
from .presets import PresetCode, generator_for


@dataclass
class CFunction:
    """A generated C function."""
    base_name: str
    returns: str
    args: str
    brief: str
    tags: list[str] = field(default_factory=list)
    body: list[str] = field(default_factory=list)


class CCodeGen:
    """Renders the three artifacts for one component."""

    def __init__(self, params: RenderParams):
        self.params = params
        self.ctx = GenContext(params)
        generator = generator_for(params.preset)
        self.preset_decl = generator.generate(self.ctx, inline=False) if generator else PresetCode()
        self.preset_inline = generator.generate(self.ctx, inline=True) if generator else PresetCode()

    # -------------------------------------------------------------------------
    # Shared pieces
    # -------------------------------------------------------------------------

    @property
    def header_guard(self) -> str:
        return f"{self.ctx.upper}_H"

    def base_functions(self) -> list[CFunction]:
        """Duty cycle, pulse and frequency control common to every preset."""
        ctx = self.ctx
        fn = ctx.format_name
        p = self.params
        pulse = ctx.var("pulse")
        period = ctx.var("period")
        psc = ctx.var("prescaler")
        stopped = ctx.var("is_logically_stopped")
        timer = ctx.handle
        channel = ctx.channel_macro
        candidate = p.candidate

        return [
            CFunction("PwmInit", "void", "void", "Initialize PWM with default settings",
                      [f"@note Called automatically by {fn('Init')}()"], [
                "    // Timer already configured by CubeMX with:",
                f"    // - Prescaler: {candidate.prescaler}",
                f"    // - ARR: {candidate.period}",
                f"    // - PWM Frequency: {js_number(p.frequency_hz)} Hz",
                "",
                f"    // Set initial duty cycle ({js_number(p.duty.percent)}%)",
                f"    __HAL_TIM_SET_COMPARE(&{timer}, {channel}, {pulse});",
                f"    {stopped} = 0;  // Reset logical stop flag",
                f"    HAL_TIM_PWM_Start(&{timer}, {channel});",
            ]),
            CFunction("GetDutyCycle", "float", "void", "Get current duty cycle as percentage",
                      ["@return Duty cycle (0.0 - 100.0)"], [
                f"    return ((float){pulse} / (float){period}) * 100.0f;",
            ]),
            CFunction("GetPulse", "uint32_t", "void", "Get current pulse value (CCR register)",
                      ["@return Pulse value (0 to ARR)"], [
                f"    return {pulse};",
            ]),
            CFunction("GetMaxPulse", "uint32_t", "void", "Get maximum pulse value (ARR register)",
                      ["@return Maximum pulse value"], [
                f"    return {period};",
            ]),
            CFunction("GetFrequency", "float", "void", "Get current PWM frequency in Hz",
                      ["@return Frequency in Hz"], [
                f"    uint32_t timer_clock = {ctx.timer_clock_hz}; // {ctx.clock_comment}",
                f"    return (float)timer_clock / ((float)({psc} + 1) * (float)({period} + 1));",
            ]),
            CFunction("SetDutyCycle", "void", "float duty_cycle", "Set duty cycle as percentage",
                      ["@param duty_cycle Duty cycle (0.0 - 100.0)"], [
                "    if (duty_cycle < 0.0f) duty_cycle = 0.0f;",
                "    if (duty_cycle > 100.0f) duty_cycle = 100.0f;",
                "",
                f"    {pulse} = (uint32_t)((duty_cycle / 100.0f) * {period});",
                f"    __HAL_TIM_SET_COMPARE(&{timer}, {channel}, {pulse});",
            ]),
            CFunction("SetPulse", "void", "uint32_t pulse", "Set pulse value directly",
                      ["@param pulse Pulse value (0 to ARR)"], [
                f"    if (pulse > {period}) pulse = {period};",
                "",
                f"    {pulse} = pulse;",
                f"    __HAL_TIM_SET_COMPARE(&{timer}, {channel}, {pulse});",
            ]),
            CFunction("IsToggling", "uint8_t", "void", "Check if PWM output is currently active",
                      ["@return 1 if PWM is active, 0 if stopped"], [
                f"    return !{stopped};",
            ]),
            CFunction("SetFrequency", "void", "uint32_t frequency_hz", "Change PWM frequency dynamically",
                      ["@param frequency_hz Desired frequency in Hz",
                       "@note This will reset duty cycle to 50%",
                       "@note PWM will stop if frequency_hz == 0 (hardware level stop)"], [
                "    // Check if PWM was running before",
                f"    uint8_t was_running = {fn('IsToggling')}() && ({fn('GetFrequency')}() > 0);",
                "",
                "    // Stop PWM temporarily for configuration",
                f"    HAL_TIM_PWM_Stop(&{timer}, {channel});",
                "",
                "    // Hardware level stop - frequency == 0",
                "    if (frequency_hz == 0) {",
                "        // Stop at hardware level, don't restart",
                "        return;",
                "    }",
                "",
                f"    uint32_t timer_clock = {ctx.timer_clock_hz}; // {ctx.clock_comment}",
                "    uint32_t target_counts = timer_clock / frequency_hz;",
                "",
                "    // Try to maintain high resolution",
                f"    {psc} = 0;",
                f"    {period} = target_counts - 1;",
                "",
                f"    // If period exceeds {ctx.register_bit_width}-bit limit, adjust prescaler",
                f"    while ({period} > {ctx.max_period} && {psc} < 65535) {{",
                f"        {psc}++;",
                f"        {period} = (target_counts / ({psc} + 1)) - 1;",
                "    }",
                "",
                f"    __HAL_TIM_SET_PRESCALER(&{timer}, {psc});",
                f"    __HAL_TIM_SET_AUTORELOAD(&{timer}, {period});",
                "",
                "    // Reset pulse to 50% duty cycle",
                f"    {pulse} = {period} / 2;",
                f"    __HAL_TIM_SET_COMPARE(&{timer}, {channel}, {pulse});",
                "",
                "    // Only restart if it was running before AND not logically stopped",
                f"    if (was_running && !{stopped}) {{",
                f"        HAL_TIM_PWM_Start(&{timer}, {channel});",
                "    }",
            ]),
            CFunction("SyncState", "void", "void", "Synchronize cached state with hardware",
                      ["@note Call if timer was modified externally"], [
                f"    {pulse} = __HAL_TIM_GET_COMPARE(&{timer}, {channel});",
                f"    {period} = __HAL_TIM_GET_AUTORELOAD(&{timer});",
                f"    {psc} = {timer}.Instance->PSC;",
            ]),
        ]

    def init_function(self, preset: PresetCode) -> CFunction:
        """Master init: base PWM init followed by any preset init calls."""
        fn = self.ctx.format_name
        body = [f"    {fn('PwmInit')}();"]
        body.extend(f"    {call}();" for call in preset.init_calls)
        return CFunction("Init", "void", "void",
                         "Master initialization - calls all required init functions",
                         [f"@note Call this once after MX_{self.params.timer.timer_name}_Init() in main.c"],
                         body)

    def emit_prologue(self, buf: CodeBuffer) -> None:
        """Guard, includes, constants and the extern timer handle."""
        ctx = self.ctx
        p = self.params
        up = ctx.upper

        buf.emit(f"#ifndef {self.header_guard}")
        buf.emit(f"#define {self.header_guard}")
        buf.emit()
        buf.emit_section("Includes")
        buf.emit('#include "main.h"')
        buf.emit("#include <stdint.h>")
        buf.emit()
        buf.emit_section("Exported types")
        buf.emit_section("Exported constants")
        buf.emit(f"#define {up}_TIMER              {p.timer.timer_name}")
        buf.emit(f"#define {up}_CHANNEL            {ctx.channel_macro}")
        buf.emit(f"#define {up}_DEFAULT_FREQ       {js_number(p.frequency_hz)}")
        buf.emit(f"#define {up}_DEFAULT_DUTY       {js_number(p.duty.percent)}")
        buf.emit(f"#define {up}_PRESCALER          {p.candidate.prescaler}")
        buf.emit(f"#define {up}_PERIOD             {p.candidate.period}")
        buf.emit(f"#define {up}_PULSE              {p.pulse}")
        buf.emit()
        buf.emit_section("Exported variables")
        buf.emit("// Timer handle (defined in main.c by CubeMX)")
        buf.emit(f"extern TIM_HandleTypeDef {ctx.handle};")
        buf.emit()

    def emit_state(self, buf: CodeBuffer) -> None:
        """Private state variables, identical in header-only and source."""
        ctx = self.ctx
        p = self.params
        buf.emit(f"// Static variables with hash to prevent conflicts: {ctx.name_hash}")
        buf.emit(f"static uint32_t {ctx.var('pulse')} = {p.pulse};")
        buf.emit(f"static uint32_t {ctx.var('period')} = {p.candidate.period};")
        buf.emit(f"static uint32_t {ctx.var('prescaler')} = {p.candidate.prescaler};")
        buf.emit(f"static uint8_t {ctx.var('is_logically_stopped')} = 0;")

    def emit_definition(self, buf: CodeBuffer, func: CFunction, inline: bool,
                        full_doc: bool = True) -> None:
        name = self.ctx.format_name(func.base_name)
        buf.emit()
        if full_doc:
            buf.emit_doc(func.brief, *func.tags)
        else:
            buf.emit_doc(func.brief)
        buf.emit(f"{self.ctx.fn_kw(inline)}{func.returns} {name}({func.args}) {{")
        buf.emit_lines(func.body)
        buf.emit("}")

    def emit_prototype(self, buf: CodeBuffer, func: CFunction) -> None:
        buf.emit()
        buf.emit_doc(func.brief, *func.tags)
        buf.emit(f"{func.returns} {self.ctx.format_name(func.base_name)}({func.args});")

    # -------------------------------------------------------------------------
    # Artifacts
    # -------------------------------------------------------------------------

    def gen_header_only(self) -> str:
        """Single-file component with static inline functions."""
        buf = CodeBuffer()
        self.emit_prologue(buf)
        buf.emit_section("Private variables (static inline safe)")
        self.emit_state(buf)
        buf.emit()
        buf.emit_section("Inline function implementations")
        for func in self.base_functions():
            self.emit_definition(buf, func, inline=True)
        buf.emit_lines(self.preset_inline.declarations)
        buf.emit_lines(self.preset_inline.implementations)
        buf.emit()
        self.emit_definition(buf, self.init_function(self.preset_inline), inline=True)
        buf.emit()
        buf.emit(f"#endif /* {self.header_guard} */")
        buf.emit()
        return buf.text()

    def gen_header(self) -> str:
        """Declarations for the header/source pair."""
        buf = CodeBuffer()
        self.emit_prologue(buf)
        buf.emit_section("Exported functions")
        for func in self.base_functions():
            self.emit_prototype(buf, func)
        buf.emit_lines(self.preset_decl.declarations)
        buf.emit()
        self.emit_prototype(buf, self.init_function(self.preset_decl))
        buf.emit()
        buf.emit(f"#endif /* {self.header_guard} */")
        buf.emit()
        return buf.text()

    def gen_source(self) -> str:
        """Definitions for the header/source pair."""
        buf = CodeBuffer()
        buf.emit_section("Includes")
        buf.emit(f'#include "{self.params.naming.header_name}"')
        buf.emit()
        buf.emit_section("Private typedef")
        buf.emit_section("Private define")
        buf.emit_section("Private macro")
        buf.emit_section("Private variables")
        self.emit_state(buf)
        buf.emit()
        buf.emit_section("Private function prototypes")
        buf.emit_section("Exported functions")
        for func in self.base_functions():
            self.emit_definition(buf, func, inline=False, full_doc=False)
        buf.emit_lines(self.preset_decl.implementations)
        buf.emit()
        self.emit_definition(buf, self.init_function(self.preset_decl),
                             inline=False, full_doc=False)
        buf.emit()
        buf.emit_section("Private functions")
        buf.emit()
        return buf.text()

    def generate(self) -> CodeTemplates:
        return CodeTemplates(self.gen_header_only(), self.gen_header(), self.gen_source())


def render(params: RenderParams) -> CodeTemplates:
    """Render header-only, header and source text for a component."""
    return CCodeGen(params).generate()


def render_settings(params: RenderParams) -> str:
    """CubeMX / CubeIDE settings matching the generated code."""
    width = params.clock.register_bit_width
    counter = [
        (f"Prescaler (PSC - {width} bits value)", str(params.candidate.prescaler)),
        ("Counter Mode", "Up"),
        (f"Counter Period (AutoReload Register - {width} bits value)", str(params.candidate.period)),
        ("Internal Clock Division (CKD)", "No Division"),
        ("auto-reload preload", "Enable"),
    ]
    channel = [
        ("Mode", "PWM mode 1"),
        (f"Pulse ({width} bits value)", str(params.pulse)),
        ("Output compare preload", "Enable"),
        ("Fast Mode", "Disable"),
        ("CH Polarity", "High"),
        ("CH Idle State", "Reset"),
    ]
    column = max(len(label) for label, _ in counter + channel) + 4

    lines = [f"{params.timer.timer_name} Counter Settings"]
    lines.extend(f"  {label.ljust(column)}{value}" for label, value in counter)
    lines.append("")
    lines.append(f"PWM Generation Channel {params.timer.channel}")
    lines.extend(f"  {label.ljust(column)}{value}" for label, value in channel)
    return "\n".join(lines) + "\n"
