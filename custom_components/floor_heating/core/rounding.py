"""Rounding helpers for temperatures and actuator positions."""

import math

# Target temperatures are kept on a half-degree grid
TARGET_PRECISION: float = 0.5


def round_to_step(value: float, step: float = 1.0) -> float:
    """
    Round a value to the nearest multiple of step, with halves rounding up.

    Python's built-in round() rounds halves to even, which would make a
    target of 20.75°C resolve to 20.5°C but 21.25°C resolve to 21.0°C.
    Heating targets and valve positions should round consistently upward
    at the midpoint instead.

    Args:
        value: Value to round.
        step: Quantization step size (default 1.0).

    Returns:
        Rounded value.

    """
    return math.floor(value / step + 0.5) * step


def round_target(value: float) -> float:
    """Round a target temperature to the nearest half degree."""
    return round_to_step(value, TARGET_PRECISION)
