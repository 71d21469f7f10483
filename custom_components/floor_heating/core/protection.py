"""
Floor protection limiter for Floor Heating Controller.

Every proposed heating output passes through clamp_output() before it
is committed. The rules are applied in a fixed order so that a hard
floor limit or a moisture fault always wins over rate limiting or
derating.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from custom_components.floor_heating.const import (
    DERATING_HEADROOM,
    RATE_LIMIT_OUTPUT_CAP,
)

from .zone import LimitReason

if TYPE_CHECKING:
    from .zone import ZoneRuntime


@dataclass(frozen=True)
class ProtectionResult:
    """Output after floor protection and the rule that shaped it."""

    output: float
    reason: LimitReason = LimitReason.NONE

    @property
    def is_safety_stop(self) -> bool:
        """Return True if output was forced to zero for safety."""
        return self.reason in (
            LimitReason.FLOOR_LIMIT,
            LimitReason.MOISTURE,
            LimitReason.SENSOR_FAULT,
        )


def clamp_output(
    runtime: ZoneRuntime,
    raw_output: float,
    *,
    rate_cap: float = RATE_LIMIT_OUTPUT_CAP,
    derating_headroom: float = DERATING_HEADROOM,
) -> ProtectionResult:
    """
    Clamp a proposed output against the zone's floor limits.

    A proposal or an air or floor reading that is NaN or infinite stops
    heating before any rule is applied.

    Rules, in order:
    1. Floor at or above its maximum: output 0.
    2. Floor rising faster than the material tolerates: output capped.
    3. Less than derating_headroom below the maximum: output scaled
       linearly with the remaining headroom.
    4. Moisture detected: output 0.

    Rules 1-3 need a floor temperature and are skipped without one.

    Args:
        runtime: Zone runtime with current readings and history.
        raw_output: Output proposed by the controller.
        rate_cap: Output cap applied while the rise rate is exceeded.
        derating_headroom: Headroom in °C below which output is derated.

    Returns:
        ProtectionResult with an output in 0-100 and the deciding rule.

    """
    state = runtime.state
    readings = (state.air_temp, state.floor_temp)
    if not math.isfinite(raw_output) or any(
        value is not None and not math.isfinite(value) for value in readings
    ):
        return ProtectionResult(output=0.0, reason=LimitReason.SENSOR_FAULT)

    output = max(0.0, min(100.0, raw_output))
    reason = LimitReason.NONE
    max_floor = runtime.max_floor_temp

    if state.floor_temp is not None:
        if state.floor_temp >= max_floor:
            return ProtectionResult(output=0.0, reason=LimitReason.FLOOR_LIMIT)

        rate = runtime.floor_rate_per_hour()
        if (
            rate is not None
            and rate > runtime.config.limits.max_rate_per_hour
            and output > rate_cap
        ):
            output = rate_cap
            reason = LimitReason.RATE_LIMIT

        headroom = max_floor - state.floor_temp
        if headroom < derating_headroom:
            output *= headroom / derating_headroom
            reason = LimitReason.DERATED

    if state.moisture_detected:
        return ProtectionResult(output=0.0, reason=LimitReason.MOISTURE)

    return ProtectionResult(output=max(0.0, round(output, 1)), reason=reason)
