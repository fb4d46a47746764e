"""
pwmcalc - STM32 PWM timer calculator and C code generator
"""

__version__ = "0.1.0"
