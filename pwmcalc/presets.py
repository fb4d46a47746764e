"""
Preset code generators.

Each preset contributes extra declarations and implementations to the
generated component plus optional calls chained into the master init
function. Generators share one contract:

    generate(ctx, inline) -> PresetCode

where inline selects 'static inline' linkage for the header-only file.
"""

from dataclasses import dataclass, field
from typing import Optional

from .emitter import CodeBuffer, GenContext
from .model import LedDimming, PresetConfig, StandardServo, TogglePin
from .numfmt import c_float, js_number, to_fixed
from .retune import FREQ_CACHE_SIZE, build_frequency_cache


# Servo pulse endpoints: 1 ms at min angle, 2 ms at max angle
SERVO_MIN_PULSE_US = 1000
SERVO_MAX_PULSE_US = 2000
# Same endpoints as duty cycle at 50 Hz (20 ms period)
SERVO_MIN_DUTY = 5.0
SERVO_MAX_DUTY = 10.0


@dataclass
class PresetCode:
    """Lines a preset adds to the generated artifacts."""
    declarations: list[str] = field(default_factory=list)
    implementations: list[str] = field(default_factory=list)
    init_calls: list[str] = field(default_factory=list)


def servo_angle_to_duty(angle: float, min_angle: float, max_angle: float) -> float:
    """Duty cycle percentage for a servo angle, rounded to 2 decimals."""
    angle_range = max(max_angle - min_angle, 1)
    duty = SERVO_MIN_DUTY + ((angle - min_angle) / angle_range) * (SERVO_MAX_DUTY - SERVO_MIN_DUTY)
    return float(to_fixed(duty, 2))


class PresetGenerator:
    """Base class for preset generators."""

    def generate(self, ctx: GenContext, inline: bool) -> PresetCode:
        raise NotImplementedError


class ServoGenerator(PresetGenerator):
    """Angle control for a standard hobby servo."""

    def __init__(self, preset: StandardServo):
        self.preset = preset

    def generate(self, ctx: GenContext, inline: bool) -> PresetCode:
        kw = ctx.fn_kw(inline)
        fn = ctx.format_name
        lo = c_float(self.preset.min_angle)
        hi = c_float(self.preset.max_angle)
        span = c_float(self.preset.max_angle - self.preset.min_angle)
        duty_lo = c_float(SERVO_MIN_DUTY)
        duty_span = c_float(SERVO_MAX_DUTY - SERVO_MIN_DUTY)
        min_text = js_number(self.preset.min_angle)
        max_text = js_number(self.preset.max_angle)
        pulse = ctx.var("pulse")
        period = ctx.var("period")

        decl = CodeBuffer()
        decl.emit()
        decl.emit_section("Servo Control Constants")
        decl.emit(f"#define {ctx.upper}_MIN_ANGLE    {min_text}")
        decl.emit(f"#define {ctx.upper}_MAX_ANGLE    {max_text}")
        decl.emit(f"#define {ctx.upper}_MIN_PULSE_US {SERVO_MIN_PULSE_US}")
        decl.emit(f"#define {ctx.upper}_MAX_PULSE_US {SERVO_MAX_PULSE_US}")
        decl.emit()
        decl.emit_section("Servo Control Functions")
        decl.emit()
        decl.emit_doc("Set angle",
                      f"@param angle_degrees Target angle ({min_text} to {max_text} degrees)")
        decl.emit(f"{kw}void {fn('SetAngle')}(float angle_degrees);")
        decl.emit()
        decl.emit_doc("Get current angle", "@return Current angle in degrees")
        decl.emit(f"{kw}float {fn('GetAngle')}(void);")
        decl.emit()
        decl.emit_doc("Get minimum angle setting", "@return Minimum angle in degrees")
        decl.emit(f"{kw}float {fn('GetMinAngle')}(void);")
        decl.emit()
        decl.emit_doc("Get maximum angle setting", "@return Maximum angle in degrees")
        decl.emit(f"{kw}float {fn('GetMaxAngle')}(void);")

        impl = CodeBuffer()
        impl.emit()
        impl.emit_lines([
            f"{kw}void {fn('SetAngle')}(float angle_degrees) {{",
            "    // Clamp angle to valid range",
            f"    if (angle_degrees < {lo}) angle_degrees = {lo};",
            f"    if (angle_degrees > {hi}) angle_degrees = {hi};",
            "",
            "    // Map angle to duty cycle",
            f"    // Servo pulse width: {SERVO_MIN_PULSE_US}us ({min_text} deg) "
            f"to {SERVO_MAX_PULSE_US}us ({max_text} deg)",
            f"    float angle_range = {hi} - {lo};",
            f"    float angle_normalized = (angle_degrees - {lo}) / angle_range;",
            f"    float duty_cycle = {duty_lo} + (angle_normalized * {duty_span});",
            "",
            f"    {pulse} = (uint32_t)((duty_cycle / 100.0f) * {period});",
            f"    __HAL_TIM_SET_COMPARE(&{ctx.handle}, {ctx.channel_macro}, {pulse});",
            "}",
            "",
            f"{kw}float {fn('GetAngle')}(void) {{",
            f"    float duty_cycle = ((float){pulse} / (float){period}) * 100.0f;",
            f"    float angle_normalized = (duty_cycle - {duty_lo}) / {duty_span};",
            f"    return {lo} + (angle_normalized * {span});",
            "}",
            "",
            f"{kw}float {fn('GetMinAngle')}(void) {{",
            f"    return {lo};",
            "}",
            "",
            f"{kw}float {fn('GetMaxAngle')}(void) {{",
            f"    return {hi};",
            "}",
        ])

        return PresetCode(decl.lines, impl.lines)


class LedGenerator(PresetGenerator):
    """Brightness aliases for the duty-cycle functions."""

    def generate(self, ctx: GenContext, inline: bool) -> PresetCode:
        kw = ctx.fn_kw(inline)
        fn = ctx.format_name

        decl = CodeBuffer()
        decl.emit()
        decl.emit_section("LED Dimming Functions")
        decl.emit()
        decl.emit_doc("Set LED brightness",
                      "@param brightness_percent Brightness level (0 = off, 100 = max)")
        decl.emit(f"{kw}void {fn('SetBrightness')}(float brightness_percent);")
        decl.emit()
        decl.emit_doc("Get current LED brightness",
                      "@return Brightness percentage (0.0 - 100.0)")
        decl.emit(f"{kw}float {fn('GetBrightness')}(void);")

        impl = CodeBuffer()
        impl.emit()
        impl.emit_lines([
            f"{kw}void {fn('SetBrightness')}(float brightness_percent) {{",
            "    // Brightness is just duty cycle",
            f"    {fn('SetDutyCycle')}(brightness_percent);",
            "}",
            "",
            f"{kw}float {fn('GetBrightness')}(void) {{",
            f"    return {fn('GetDutyCycle')}();",
            "}",
        ])

        return PresetCode(decl.lines, impl.lines)


class TogglePinGenerator(PresetGenerator):
    """50% square wave with cached runtime frequency changes."""

    def generate(self, ctx: GenContext, inline: bool) -> PresetCode:
        kw = ctx.fn_kw(inline)
        fn = ctx.format_name
        up = ctx.prefix_upper
        max_period = ctx.max_period
        cache = build_frequency_cache(ctx.timer_clock_hz, ctx.register_bit_width)
        table = ctx.var("freq_cache")
        count = ctx.var("freq_cache_count")
        last_tick = ctx.var("last_tick")
        psc = ctx.var("prescaler")
        period = ctx.var("period")
        pulse = ctx.var("pulse")
        stopped = ctx.var("is_logically_stopped")
        timer = ctx.handle
        channel = ctx.channel_macro

        decl = CodeBuffer()
        decl.emit()
        decl.emit_section("Toggle Pin Configuration")
        decl.emit(f"#define {up}_FREQ_CACHE_SIZE    {FREQ_CACHE_SIZE}  // Cache for frequency intervals")
        decl.emit(f"#define {up}_TICK_DEBOUNCE      1   // Set to 0 to disable tick debouncing")
        decl.emit()
        decl.emit_section("Toggle Pin Functions")
        decl.emit()
        decl.emit_doc("Initialize frequency cache for fast runtime switching",
                      f"@note Called automatically by {fn('Init')}()",
                      "@note Enables the PSC/ARR table precomputed at 1/10/100 Hz, 1/10 kHz intervals")
        decl.emit(f"{kw}void {fn('InitFrequencyCache')}(void);")
        decl.emit()
        decl.emit_doc("Set toggle frequency with interval-based cached lookup (50% duty cycle maintained)",
                      "@param frequency_hz Desired toggle frequency in Hz",
                      "@note Uses nearest cached interval to minimize calculation iterations")
        decl.emit(f"{kw}void {fn('SetToggleFrequency')}(uint32_t frequency_hz);")
        decl.emit()
        decl.emit_doc("Get current toggle frequency", "@return Frequency in Hz")
        decl.emit(f"{kw}float {fn('GetToggleFrequency')}(void);")
        decl.emit()
        decl.emit_doc("Start toggling at configured frequency")
        decl.emit(f"{kw}void {fn('StartToggle')}(void);")
        decl.emit()
        decl.emit_doc("Stop toggling (PWM stopped)")
        decl.emit(f"{kw}void {fn('StopToggle')}(void);")

        impl = CodeBuffer()
        impl.emit()
        impl.emit("// Frequency cache for fast runtime switching (interval-based)")
        impl.emit(f"// Precomputed for a {ctx.clock_comment} timer clock, "
                  f"{ctx.register_bit_width}-bit period")
        impl.emit("static const struct {")
        impl.emit("    uint32_t freq;")
        impl.emit("    uint32_t psc;")
        impl.emit("    uint32_t arr;")
        impl.emit(f"}} {table}[{up}_FREQ_CACHE_SIZE] = {{")
        for entry in cache:
            impl.emit(f"    {{{entry.freq}, {entry.psc}, {entry.arr}}},")
        impl.emit("};")
        impl.emit(f"static uint8_t {count} = 0;")
        impl.emit(f"static uint32_t {last_tick} = 0;")
        impl.emit()
        impl.emit_lines([
            f"{kw}void {fn('InitFrequencyCache')}(void) {{",
            f"    {count} = {len(cache)};",
            f"    {last_tick} = 0;",
            "}",
            "",
            f"{kw}void {fn('SetToggleFrequency')}(uint32_t frequency_hz) {{",
            f"#if {up}_TICK_DEBOUNCE",
            "    // Tick debouncing - ignore if called within the same tick",
            "    uint32_t current_tick = HAL_GetTick();",
            f"    if (current_tick == {last_tick}) {{",
            "        return;  // Ignore rapid calls within same tick",
            "    }",
            f"    {last_tick} = current_tick;",
            "#endif",
            "",
            "    // Check if PWM was running before",
            f"    uint8_t was_running = {fn('IsToggling')}() && ({fn('GetFrequency')}() > 0);",
            "",
            "    // Stop PWM temporarily for configuration",
            "    if (was_running) {",
            f"        HAL_TIM_PWM_Stop(&{timer}, {channel});",
            "    }",
            "",
            "    // Hardware level stop - frequency == 0",
            "    if (frequency_hz == 0) {",
            "        // Stop at hardware level, don't restart",
            "        return;",
            "    }",
            "",
            "    // Find nearest cached frequency as starting point",
            "    uint32_t nearest_psc = 0;",
            "    uint32_t min_diff = 0xFFFFFFFF;",
            "",
            f"    for (uint8_t i = 0; i < {count}; i++) {{",
            f"        uint32_t diff = ({table}[i].freq > frequency_hz)",
            f"            ? ({table}[i].freq - frequency_hz)",
            f"            : (frequency_hz - {table}[i].freq);",
            "",
            "        if (diff < min_diff) {",
            "            min_diff = diff;",
            f"            nearest_psc = {table}[i].psc;",
            "",
            "            // Exact match - use it directly",
            "            if (diff == 0) {",
            f"                {psc} = {table}[i].psc;",
            f"                {period} = {table}[i].arr;",
            f"                {pulse} = {period} / 2;",
            "",
            f"                {timer}.Instance->PSC = {psc};",
            f"                {timer}.Instance->ARR = {period};",
            f"                {timer}.Instance->CCR{ctx.channel} = {pulse};",
            "",
            "                // Restart if it was running before AND not logically stopped",
            f"                if (was_running && !{stopped}) {{",
            f"                    HAL_TIM_PWM_Start(&{timer}, {channel});",
            "                }",
            "                return;",
            "            }",
            "        }",
            "    }",
            "",
            "    // Use nearest cached values as starting point for calculation",
            f"    uint32_t timer_clock = {ctx.timer_clock_hz}; // {ctx.clock_comment}",
            "    uint32_t target_counts = timer_clock / frequency_hz;",
            "",
            f"    {psc} = nearest_psc;",
            f"    {period} = (target_counts / ({psc} + 1)) - 1;",
            "",
            "    // Fine-tune upward until the period fits",
            f"    while ({period} > {max_period} && {psc} < 65535) {{",
            f"        {psc}++;",
            f"        {period} = (target_counts / ({psc} + 1)) - 1;",
            "    }",
            "",
            "    // Fine-tune downward to reclaim resolution",
            f"    while ({period} < ({max_period} / 2) && {psc} > 0) {{",
            f"        {psc}--;",
            f"        {period} = (target_counts / ({psc} + 1)) - 1;",
            f"        if ({period} > {max_period}) {{",
            f"            {psc}++;",
            f"            {period} = (target_counts / ({psc} + 1)) - 1;",
            "            break;",
            "        }",
            "    }",
            "",
            f"    {pulse} = {period} / 2;",
            "",
            f"    {timer}.Instance->PSC = {psc};",
            f"    {timer}.Instance->ARR = {period};",
            f"    {timer}.Instance->CCR{ctx.channel} = {pulse};",
            "",
            "    // Restart if it was running before AND not logically stopped",
            f"    if (was_running && !{stopped}) {{",
            f"        HAL_TIM_PWM_Start(&{timer}, {channel});",
            "    }",
            "}",
            "",
            f"{kw}float {fn('GetToggleFrequency')}(void) {{",
            f"    return {fn('GetFrequency')}();",
            "}",
            "",
            f"{kw}void {fn('StartToggle')}(void) {{",
            f"    {stopped} = 0;  // Clear logical stop",
            f"    if ({fn('GetFrequency')}() > 0) {{  // Only start if frequency is valid",
            f"        HAL_TIM_PWM_Start(&{timer}, {channel});",
            "    }",
            "}",
            "",
            f"{kw}void {fn('StopToggle')}(void) {{",
            f"    {stopped} = 1;  // Set logical stop",
            f"    HAL_TIM_PWM_Stop(&{timer}, {channel});",
            "}",
        ])

        return PresetCode(decl.lines, impl.lines, [fn("InitFrequencyCache")])


def generator_for(preset: Optional[PresetConfig]) -> Optional[PresetGenerator]:
    """Pick the generator for a preset; None for no or unknown preset."""
    match preset:
        case StandardServo():
            return ServoGenerator(preset)
        case LedDimming():
            return LedGenerator()
        case TogglePin():
            return TogglePinGenerator()
        case _:
            return None
